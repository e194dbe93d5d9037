# cli.py
import os
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.prompt import IntPrompt, Confirm, Prompt
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box

from prompt_toolkit import prompt
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.styles import Style as PromptStyle

from sdk.storefront_client import StorefrontClient

console = Console()
c = StorefrontClient(
    base_url=os.getenv("STOREFRONT_API_URL", "http://127.0.0.1:8085"),
    admin_token=os.getenv("STOREFRONT_ADMIN_TOKEN") or None,
    token_provider=lambda: os.getenv("STOREFRONT_CUSTOMER_TOKEN") or None,
)

status_message = "Ready"
product_cache: List[Dict[str, Any]] = []
# slug -> checkout item
cart: Dict[str, Dict[str, Any]] = {}

custom_style = PromptStyle.from_dict({
    'completion-menu.completion': 'bg:#008888 #ffffff',
    'completion-menu.completion.current': 'bg:#00aaaa #000000',
    'scrollbar.background': 'bg:#88aaaa',
    'scrollbar.button': 'bg:#222222',
})


# ---------------------------
# Display helpers
# ---------------------------
def show_products(products: List[Dict[str, Any]]):
    if not products:
        console.print("[italic yellow]No products found[/italic yellow]")
        return

    table = Table(
        title="Catalog",
        box=box.ROUNDED,
        header_style="bold cyan",
        title_style="bold magenta",
        show_lines=True
    )
    table.add_column("Slug", style="dim", width=30)
    table.add_column("Name", style="bold", width=30)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Was", justify="right", width=10)
    table.add_column("Status", width=12)

    for p in products:
        price = p.get("price", 0)
        original = p.get("originalPrice", price)
        if p.get("soldOut"):
            status = "[red]sold out[/red]"
        elif p.get("available", True):
            status = "[green]available[/green]"
        else:
            status = "[yellow]unavailable[/yellow]"
        table.add_row(
            p.get("slug", "N/A"),
            p.get("name", "N/A"),
            f"${price:.2f}",
            f"${original:.2f}" if original > price else "",
            status
        )
    console.print(table)


def show_product(p: Dict[str, Any]):
    lines = [
        f"[bold]{p.get('name')}[/bold]  [green]${p.get('price', 0):.2f}[/green]",
        p.get("description", ""),
        f"Sizes: {', '.join(str(s) for s in p.get('sizes', []))}",
        f"Categories: {', '.join(str(s) for s in p.get('categories', [])) or '-'}",
    ]
    for feature in p.get("features") or []:
        lines.append(f"  • {feature}")
    console.print(Panel("\n".join(lines), title=p.get("slug", ""), border_style="cyan"))


def show_cart():
    if not cart:
        console.print(Panel("Your cart is empty", title="Cart", style="blue"))
        return

    table = Table(box=box.ROUNDED, header_style="bold blue", show_lines=True)
    table.add_column("Product", style="bold", width=30)
    table.add_column("Qty", justify="right", width=8)
    table.add_column("Price", justify="right", width=12)
    table.add_column("Subtotal", justify="right", width=12)

    total = 0.0
    for item in cart.values():
        line = item["price"] * item["quantity"]
        total += line
        table.add_row(item["name"], str(item["quantity"]), f"${item['price']:.2f}", f"${line:.2f}")

    console.print(Panel(table, title=f"Cart - Total: ${total:.2f}", border_style="blue"))


def show_tickets(tickets: List[Dict[str, Any]]):
    if not tickets:
        console.print("[italic yellow]No tickets found[/italic yellow]")
        return

    table = Table(title="Support tickets", box=box.ROUNDED, header_style="bold yellow", show_lines=True)
    table.add_column("ID", style="dim", width=22)
    table.add_column("Customer", width=28)
    table.add_column("Subject", width=34)
    table.add_column("Status", width=18)
    table.add_column("Updated", width=20)

    for t in tickets:
        status_style = "green" if t.get("status") == "closed" else "yellow"
        table.add_row(
            t.get("id", "N/A"),
            t.get("customerEmail", ""),
            t.get("subject") or "-",
            f"[{status_style}]{t.get('status', 'N/A')}[/{status_style}]",
            (t.get("updatedAt") or "")[:19]
        )
    console.print(table)


def show_orders(orders: List[Dict[str, Any]]):
    if not orders:
        console.print("[italic yellow]No orders found[/italic yellow]")
        return

    table = Table(title="Orders", box=box.ROUNDED, header_style="bold green", show_lines=True)
    table.add_column("ID", style="dim", width=24)
    table.add_column("Number", width=12)
    table.add_column("Customer", width=24)
    table.add_column("Total", justify="right", width=10)
    table.add_column("Status", width=12)
    table.add_column("Created", width=20)

    for o in orders:
        table.add_row(
            o.get("id", "N/A"),
            o.get("orderNumber") or "-",
            o.get("customerName", ""),
            f"${(o.get('amountTotal') or 0) / 100:.2f}",
            o.get("status", "paid"),
            (o.get("createdAt") or "")[:19]
        )
    console.print(table)


def show_status(message: str, is_success: bool = True):
    style = "green" if is_success else "red"
    return Panel.fit(f"[{style}]{message}[/{style}]", title="Status")


# ---------------------------
# API wrapper
# ---------------------------
def try_api(fn, *args, success_msg: Optional[str] = None, **kwargs):
    """
    Calls fn(*args, **kwargs) behind a spinner.
    Errors are reported in the status panel and None is returned.
    """
    global status_message
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
        ) as progress:
            progress.add_task(description="Processing...", total=None)
            result = fn(*args, **kwargs)

        if success_msg:
            status_message = success_msg
            console.print(show_status(success_msg, True))
        return result
    except Exception as e:
        status_message = f"Error: {e}"
        console.print(show_status(f"Error: {e}", False))
        return None


def get_product_completer():
    global product_cache
    if not product_cache:
        product_cache = (try_api(c.list_products) or {}).get("items", [])
    return WordCompleter([p.get("slug", "") for p in product_cache if p.get("slug")], ignore_case=True)


def prompt_with_autocomplete(message: str, completer=None, default: str = ""):
    return prompt(f"{message} ", completer=completer, style=custom_style, default=default)


def create_header():
    header = Table(show_header=False, box=box.ROUNDED)
    header.add_column("left", width=30)
    header.add_column("center", width=40)
    header.add_column("right", width=30)
    header.add_row(
        "Storefront",
        "[bold blue]Shop & admin console[/bold blue]",
        f"[dim]{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}[/dim]\n{status_message}"
    )
    return Panel(header, style="bold blue")


# ---------------------------
# Actions
# ---------------------------
def add_to_cart():
    slug = prompt_with_autocomplete("Product slug", completer=get_product_completer()).strip()
    product = try_api(c.get_product, slug)
    if not product:
        console.print(f"[red]No product '{slug}'[/red]")
        return
    if not product.get("available", True):
        console.print("[yellow]That product is not available right now.[/yellow]")
        return
    qty = IntPrompt.ask("Quantity", default=1)
    item = cart.setdefault(slug, {
        "id": product["id"],
        "name": product["name"],
        "price": product["price"],
        "image": product.get("image"),
        "quantity": 0,
    })
    item["quantity"] += max(qty, 1)
    show_cart()


def remove_from_cart():
    if not cart:
        show_cart()
        return
    slug = prompt_with_autocomplete("Product slug", completer=WordCompleter(list(cart), ignore_case=True)).strip()
    if slug in cart and Confirm.ask(f"Remove {cart[slug]['name']}?"):
        del cart[slug]
    show_cart()


def checkout():
    result = c.start_checkout(list(cart.values()))
    if result.get("error"):
        console.print(show_status(result["error"], False))
        return
    console.print(show_status("Opened the payment page in your browser", True))
    if c.consume_clear_cart_flag():
        cart.clear()


def contact_support():
    name = Prompt.ask("Your name")
    email = Prompt.ask("Email")
    topic = Prompt.ask("Topic", default="general")
    order_number = Prompt.ask("Order number (optional)", default="")
    message = Prompt.ask("Message")
    resp = try_api(c.submit_support_ticket, name, email, message, topic=topic, order_number=order_number or None)
    if not resp:
        return
    if resp.get("success"):
        console.print(Panel.fit(f"Ticket [bold]{resp['ticketId']}[/bold] submitted", title="Support"))
    else:
        console.print(show_status(resp.get("error", "Unable to submit request."), False))


def show_site_settings():
    resp = try_api(c.get_site_settings)
    if not resp:
        return
    countdown = resp.get("countdown", {})
    coupon = resp.get("coupon", {})
    console.print(Panel.fit(
        f"Countdown: {'on' if countdown.get('enabled') else 'off'} "
        f"({countdown.get('label')}, ends {countdown.get('endsAt') or '-'})\n"
        f"Coupon: {coupon.get('code') or '-'} {coupon.get('discountPercent', 0)}%",
        title="Site settings"
    ))


def admin_tickets():
    status = Prompt.ask("Status filter (blank for all)", default="")
    tickets = try_api(c.list_support_tickets, status or None, success_msg="Tickets loaded")
    if tickets is not None:
        show_tickets(tickets)


def admin_orders():
    orders = try_api(c.list_orders, success_msg="Orders loaded")
    if orders is None:
        return
    show_orders(orders)
    order_id = Prompt.ask("Order id to update (blank to skip)", default="")
    if not order_id:
        return
    action = Prompt.ask("Action", choices=["accept", "ship", "cancel", "delete"])
    try_api(c.update_order, order_id, action, success_msg=f"Order {order_id}: {action}")


def admin_upload():
    path = Prompt.ask("File to upload")
    url = try_api(c.upload_asset, path, success_msg="Upload complete")
    if url:
        console.print(Panel.fit(url, title="Public URL"))


# ---------------------------
# Main menu
# ---------------------------
def menu():
    global product_cache

    console.clear()

    while True:
        console.print(create_header())
        menu_table = Table.grid(padding=(0, 2))
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)
        menu_table.add_column("Key", style="bold cyan", width=4)
        menu_table.add_column("Option", width=30)

        options = [
            ("1", "List products", "6", "Checkout"),
            ("2", "Product details", "7", "Contact support"),
            ("3", "Add to cart", "8", "Site settings"),
            ("4", "View cart", "9", "Admin: support tickets"),
            ("5", "Remove from cart", "10", "Admin: upload asset"),
            ("11", "Admin: orders", "q", "Quit")
        ]
        for row in options:
            menu_table.add_row(*row)
        console.print(Panel(menu_table, title="Menu", border_style="yellow"))

        choice = prompt_with_autocomplete(
            "\nChoose an option",
            completer=WordCompleter([str(i) for i in range(1, 12)] + ["q", "quit", "exit"])
        ).strip()

        if choice == "1":
            resp = try_api(c.list_products, success_msg="Products loaded")
            if resp is not None:
                product_cache = resp.get("items", [])
                if resp.get("error"):
                    console.print(f"[yellow]{resp['error']} Showing the standard catalog.[/yellow]")
                show_products(product_cache)
        elif choice == "2":
            slug = prompt_with_autocomplete("Product slug", completer=get_product_completer()).strip()
            product = try_api(c.get_product, slug)
            if product:
                show_product(product)
            else:
                console.print(f"[red]No product '{slug}'[/red]")
        elif choice == "3":
            add_to_cart()
        elif choice == "4":
            show_cart()
        elif choice == "5":
            remove_from_cart()
        elif choice == "6":
            checkout()
        elif choice == "7":
            contact_support()
        elif choice == "8":
            show_site_settings()
        elif choice == "9":
            admin_tickets()
        elif choice == "10":
            admin_upload()
        elif choice == "11":
            admin_orders()
        elif choice.lower() in ("q", "quit", "exit"):
            if Confirm.ask("Are you sure you want to quit?"):
                console.print(Panel.fit("[bold green]Thanks for shopping![/bold green]", title="Goodbye"))
                sys.exit(0)

        console.print()
        console.rule(style="dim")


if __name__ == "__main__":
    try:
        menu()
    except KeyboardInterrupt:
        console.print("\n\n[bold red]Interrupted by user[/bold red]")
        sys.exit(1)

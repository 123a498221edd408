"""
Storefront Session MCP Server.

Exposes the storefront session over stdio for Claude Code, Codex CLI, and Gemini CLI:
guest cart editing, phone-code and password login with automatic cart
migration, logout, and session status.
"""
import asyncio
import json
import logging
from datetime import datetime

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from .client import StorefrontClient
from .config import Settings
from .errors import StorefrontError
from .output_sanitizer import sanitize_output

logger = logging.getLogger(__name__)

_settings = Settings.from_env()


def _debug_log(tool_name: str, args: dict, result: str) -> None:
    """Append a tool call entry to the debug log file. Arguments are sanitized first."""
    try:
        _settings.debug_dir.mkdir(parents=True, exist_ok=True)
        log_file = _settings.debug_dir / f"session_{datetime.now().strftime('%Y-%m-%d')}.log"
        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        entry = (
            f"\n{'='*80}\n"
            f"[{timestamp}] TOOL: {tool_name}\n"
            f"ARGS: {sanitize_output(json.dumps(args, indent=2))}\n"
            f"RESPONSE:\n{result}\n"
        )

        with open(log_file, "a") as f:
            f.write(entry)
    except Exception as e:
        logger.debug("Debug log write failed: %s", e)

server = Server("storefront-session")

# Lazy-initialized singleton
_client: StorefrontClient | None = None


def _get_client() -> StorefrontClient:
    global _client
    if _client is None:
        _client = StorefrontClient(_settings)
        _client.start()
    return _client


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------

_PHONE_PROPERTY = {
    "type": "string",
    "description": "Phone number in E.164 format (e.g., '+15551234567')",
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        Tool(
            name="session_status",
            description="Show who is signed in, the guest cart size, any pending verification code and header counters.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="view_cart",
            description="Show the cart: the account cart when signed in, otherwise the guest cart kept on this machine.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="add_to_cart",
            description="Add a product to the guest cart. Adding a product already in the cart increases its quantity.",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string", "description": "Storefront product id"},
                    "quantity": {"type": "integer", "description": "Quantity to add (1-99)", "default": 1},
                    "unit_price": {"type": "number", "description": "Price per unit, for the local total"},
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="update_cart_item",
            description="Set the quantity of a guest cart line. A quantity of 0 removes it.",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string"},
                    "quantity": {"type": "integer", "description": "New quantity (0-99)"},
                },
                "required": ["product_id", "quantity"],
            },
        ),
        Tool(
            name="remove_from_cart",
            description="Remove a product from the guest cart.",
            inputSchema={
                "type": "object",
                "properties": {"product_id": {"type": "string"}},
                "required": ["product_id"],
            },
        ),
        Tool(
            name="request_login_code",
            description=(
                "Send a 6-digit login code by SMS. Opens the login page to pass reCAPTCHA first. "
                "The code expires after 4 minutes; requesting again cancels the previous code."
            ),
            inputSchema={
                "type": "object",
                "properties": {"phone_number": _PHONE_PROPERTY},
                "required": ["phone_number"],
            },
        ),
        Tool(
            name="verify_login_code",
            description=(
                "Sign in with the 6-digit code from request_login_code. On success the guest cart "
                "is merged into the account cart and the merged cart is reported."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "phone_number": _PHONE_PROPERTY,
                    "code": {"type": "string", "description": "The 6-digit code received by SMS"},
                },
                "required": ["phone_number", "code"],
            },
        ),
        Tool(
            name="login_with_password",
            description="Sign in with email and password. The guest cart is merged into the account cart.",
            inputSchema={
                "type": "object",
                "properties": {
                    "email": {"type": "string"},
                    "password": {"type": "string"},
                },
                "required": ["email", "password"],
            },
        ),
        Tool(
            name="logout",
            description="Sign out. The local session is cleared even if the storefront cannot be reached.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


# ---------------------------------------------------------------------------
# Tool dispatch
# ---------------------------------------------------------------------------

@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    try:
        if name == "session_status":
            result = await _handle_session_status(arguments)
        elif name == "view_cart":
            result = await _handle_view_cart(arguments)
        elif name == "add_to_cart":
            result = await _handle_add_to_cart(arguments)
        elif name == "update_cart_item":
            result = await _handle_update_cart_item(arguments)
        elif name == "remove_from_cart":
            result = await _handle_remove_from_cart(arguments)
        elif name == "request_login_code":
            result = await _handle_request_login_code(arguments)
        elif name == "verify_login_code":
            result = await _handle_verify_login_code(arguments)
        elif name == "login_with_password":
            result = await _handle_login_with_password(arguments)
        elif name == "logout":
            result = await _handle_logout(arguments)
        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

        if isinstance(result, str):
            text = result
        else:
            text = json.dumps(result, indent=2)
        sanitized = sanitize_output(text)

        _debug_log(name, arguments, sanitized)
        return [TextContent(type="text", text=sanitized)]

    except StorefrontError as e:
        logger.warning("Tool %s failed: %s", name, type(e).__name__)
        error_text = sanitize_output(f"Error ({type(e).__name__}): {e}")
        _debug_log(name, arguments, error_text)
        return [TextContent(type="text", text=error_text)]

    except Exception as e:
        logger.exception("Tool %s failed", name)
        error_text = sanitize_output(f"Error: {str(e)}")
        _debug_log(name, arguments, error_text)
        return [TextContent(type="text", text=error_text)]


# ---------------------------------------------------------------------------
# Tool implementations
# ---------------------------------------------------------------------------

def _guest_only(client: StorefrontClient) -> dict | None:
    if client.account.is_authenticated:
        return {
            "status": "error",
            "message": "Signed in: the account cart is managed by the storefront. Guest cart tools apply before login.",
        }
    return None


def _guest_cart_summary(client: StorefrontClient) -> dict:
    return {
        "status": "ok",
        "session_id": client.guest.session_id,
        "items": [line.model_dump() for line in client.guest.get_cart()],
        "total_items": client.guest.item_count,
        "total_price": round(client.guest.total_price, 2),
    }


async def _handle_session_status(args: dict) -> dict:
    return _get_client().login.status()


async def _handle_view_cart(args: dict) -> dict:
    return await _get_client().view_cart()


async def _handle_add_to_cart(args: dict) -> dict:
    client = _get_client()
    blocked = _guest_only(client)
    if blocked:
        return blocked
    client.guest.add_item(
        args["product_id"],
        quantity=int(args.get("quantity", 1)),
        unit_price=float(args.get("unit_price") or 0.0),
    )
    return _guest_cart_summary(client)


async def _handle_update_cart_item(args: dict) -> dict:
    client = _get_client()
    blocked = _guest_only(client)
    if blocked:
        return blocked
    try:
        client.guest.update_quantity(args["product_id"], int(args["quantity"]))
    except KeyError:
        return {"status": "error", "message": f"Product {args['product_id']} is not in the guest cart."}
    return _guest_cart_summary(client)


async def _handle_remove_from_cart(args: dict) -> dict:
    client = _get_client()
    blocked = _guest_only(client)
    if blocked:
        return blocked
    client.guest.remove_item(args["product_id"])
    return _guest_cart_summary(client)


async def _handle_request_login_code(args: dict) -> dict:
    return await _get_client().login.request_code(args["phone_number"])


async def _handle_verify_login_code(args: dict) -> dict:
    return await _get_client().login.verify_code(args["code"], args["phone_number"])


async def _handle_login_with_password(args: dict) -> dict:
    return await _get_client().login.login_with_password(args["email"], args["password"])


async def _handle_logout(args: dict) -> dict:
    return await _get_client().login.logout()


# ---------------------------------------------------------------------------
# Server entry point
# ---------------------------------------------------------------------------

async def main():
    """Run the MCP server over stdio."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    logger.info("Storefront Session MCP server starting...")

    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        if _client:
            await _client.close()


def run():
    """Sync entry point for console_scripts."""
    asyncio.run(main())

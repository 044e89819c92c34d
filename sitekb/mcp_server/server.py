"""MCP server exposing knowledge search and caller verification tools."""

import asyncio
import json
import logging

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from sitekb.services import Services, build_services
from sitekb.verification import totp

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 1000


def _json(payload: dict) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(payload))]


TOOLS = [
    Tool(
        name="search_knowledge_base",
        description="Answer a caller question from the business knowledge base.",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Natural language question"},
            },
            "required": ["query"],
        },
    ),
    Tool(
        name="send_otp",
        description="Issue a 6-digit SMS verification code for a call and send it to the caller.",
        inputSchema={
            "type": "object",
            "properties": {
                "call_id": {"type": "string", "description": "Unique call identifier"},
                "phone": {"type": "string", "description": "Caller phone number in E.164 format"},
            },
            "required": ["call_id", "phone"],
        },
    ),
    Tool(
        name="verify_otp",
        description="Check an SMS verification code entered or spoken by the caller.",
        inputSchema={
            "type": "object",
            "properties": {
                "call_id": {"type": "string", "description": "Unique call identifier"},
                "code": {"type": "string", "description": "6-digit code"},
            },
            "required": ["call_id", "code"],
        },
    ),
    Tool(
        name="verify_totp",
        description="Check a Google Authenticator code against the caller's shared secret.",
        inputSchema={
            "type": "object",
            "properties": {
                "secret": {"type": "string", "description": "Base32 TOTP secret"},
                "code": {"type": "string", "description": "6-digit code"},
            },
            "required": ["secret", "code"],
        },
    ),
]


async def handle_search_knowledge_base(services: Services, arguments: dict) -> list[TextContent]:
    query = arguments.get("query", "")
    if not isinstance(query, str) or not query.strip() or len(query) > MAX_QUERY_LENGTH:
        return _json({"error": "invalid_query"})

    resolution = await services.resolver.resolve(query)
    result = resolution.to_dict()
    if not resolution.found:
        result["top_matches"] = [
            {"source": c.source.value, "score": round(c.score, 4), "answer": c.answer}
            for c in services.resolver.rank(query, limit=3)
        ]
    return _json(result)


async def handle_send_otp(services: Services, arguments: dict) -> list[TextContent]:
    call_id = arguments.get("call_id", "")
    phone = arguments.get("phone", "")
    if not call_id or not phone:
        return _json({"error": "invalid_arguments"})

    record = services.otp.issue(call_id)
    minutes = max(1, int(round((record.expires_at - record.issued_at) / 60)))
    body = f"Your verification code is {record.code}. It expires in {minutes} minutes."
    sent = await services.sms_sender.send_sms(phone, body)
    if not sent:
        services.otp.discard(call_id)
        return _json({"error": "sms_failed"})
    return _json({"sent": True, "expires_at": record.expires_at})


async def handle_verify_otp(services: Services, arguments: dict) -> list[TextContent]:
    call_id = arguments.get("call_id", "")
    if not call_id:
        return _json({"error": "invalid_arguments"})
    check = services.otp.verify(call_id, str(arguments.get("code", "")))
    return _json(check.to_dict())


async def handle_verify_totp(services: Services, arguments: dict) -> list[TextContent]:
    verified = totp.verify_code(arguments.get("secret"), arguments.get("code"))
    return _json({"verified": verified})


HANDLERS = {
    "search_knowledge_base": handle_search_knowledge_base,
    "send_otp": handle_send_otp,
    "verify_otp": handle_verify_otp,
    "verify_totp": handle_verify_totp,
}


def create_server(services: Services) -> Server:
    """Build an MCP server whose tools run against the given services."""
    server = Server("sitekb")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return TOOLS

    @server.call_tool()
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:
        handler = HANDLERS.get(name)
        if handler is None:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]
        return await handler(services, arguments or {})

    return server


async def main():
    services = build_services()
    await services.initialize()
    server = create_server(services)
    try:
        async with stdio_server() as (read, write):
            await server.run(read, write, server.create_initialization_options())
    finally:
        services.close()


if __name__ == "__main__":
    asyncio.run(main())

"""
JSON-RPC 2.0 dispatch for the MCP surface. Callers authenticate before reaching here.
The method set is closed: an enum of supported methods, each bound to one handler.
"""
import logging
from enum import Enum
from typing import Any, Callable

from connect_server.config import MCP_PROTOCOL_VERSION, SERVER_NAME, SERVER_VERSION

logger = logging.getLogger(__name__)

METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
HANDLER_ERROR = -32000
UNAUTHORIZED = -32001

SERVER_INFO = {"name": SERVER_NAME, "version": SERVER_VERSION}

TOOLS = [
    {
        "name": "test_tool",
        "description": "A simple test tool that responds with OK",
        "inputSchema": {
            "type": "object",
            "properties": {
                "message": {
                    "type": "string",
                    "description": "Optional message to include in response",
                }
            },
        },
    }
]


class RpcMethod(str, Enum):
    INITIALIZE = "initialize"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"


class RpcError(Exception):
    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def _initialize(params: dict) -> dict:
    return {
        "protocolVersion": MCP_PROTOCOL_VERSION,
        "capabilities": {"tools": {}},
        "serverInfo": SERVER_INFO,
    }


def _tools_list(params: dict) -> dict:
    return {"tools": TOOLS}


def _test_tool(arguments: dict) -> dict:
    message = arguments.get("message") or "Hello from test tool!"
    return {
        "content": [
            {
                "type": "text",
                "text": f"OK: {message}\n\nThe authorization handshake completed and this call was admitted.",
            }
        ]
    }


TOOL_HANDLERS: dict[str, Callable[[dict], dict]] = {"test_tool": _test_tool}


def _tools_call(params: dict) -> dict:
    name = params.get("name")
    arguments = params.get("arguments") or {}
    handler = TOOL_HANDLERS.get(name)
    if handler is None:
        raise RpcError(INVALID_PARAMS, f"Unknown tool: {name}")
    if not isinstance(arguments, dict):
        raise RpcError(INVALID_PARAMS, "Tool arguments must be an object")
    logger.info("Tool call: %s", name)
    return handler(arguments)


HANDLERS: dict[RpcMethod, Callable[[dict], dict]] = {
    RpcMethod.INITIALIZE: _initialize,
    RpcMethod.TOOLS_LIST: _tools_list,
    RpcMethod.TOOLS_CALL: _tools_call,
}


def is_jsonrpc_message(body: Any) -> bool:
    return isinstance(body, dict) and body.get("jsonrpc") == "2.0" and isinstance(body.get("method"), str)


def error_response(code: int, message: str, request_id: Any = None) -> dict:
    return {"jsonrpc": "2.0", "error": {"code": code, "message": message}, "id": request_id}


def dispatch(message: dict) -> dict:
    """Run one JSON-RPC request and return its response object."""
    request_id = message.get("id")
    try:
        method = RpcMethod(message["method"])
    except ValueError:
        return error_response(METHOD_NOT_FOUND, f"Unsupported method: {message['method']}", request_id)
    params = message.get("params") or {}
    if not isinstance(params, dict):
        return error_response(INVALID_PARAMS, "params must be an object", request_id)
    logger.debug("Dispatching %s (id=%s)", method.value, request_id)
    try:
        result = HANDLERS[method](params)
    except RpcError as e:
        return error_response(e.code, e.message, request_id)
    except Exception as e:
        logger.exception("Handler for %s failed", method.value)
        return error_response(HANDLER_ERROR, str(e), request_id)
    return {"jsonrpc": "2.0", "result": result, "id": request_id}

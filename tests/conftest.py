import asyncio
from http import HTTPStatus

import pytest_asyncio
from websockets.asyncio.server import serve

SESSION_REPLY = '["session",[10334,1441,0.001,7400,1],null]'


class FakeCharger:
    """Stands in for the vendor's WebSocket endpoint.

    ``behaviour`` decides what happens after the start command arrives.
    """

    def __init__(self):
        self.behaviour = "reply"
        self.reply = SESSION_REPLY
        self.accepted_tokens = None  # None = accept any cookie
        self.stale_tokens: set[str] = set()  # handshake accepted, then closed with 1008
        self.received: list[str] = []
        self.cookies: list[str] = []
        self.user_agents: list[str] = []
        self.close_codes: list = []
        self.handled = asyncio.Event()
        self.url = ""

    def process_request(self, connection, request):
        cookie = request.headers.get("Cookie", "")
        self.cookies.append(cookie)
        self.user_agents.append(request.headers.get("User-Agent"))
        if self.accepted_tokens is not None and cookie not in {f"manix-sess={t}" for t in self.accepted_tokens}:
            return connection.respond(HTTPStatus.UNAUTHORIZED, "stale session\n")
        return None

    async def handler(self, ws):
        try:
            cookie = ws.request.headers.get("Cookie", "")
            if self.behaviour == "close_on_open" or cookie in {f"manix-sess={t}" for t in self.stale_tokens}:
                await ws.close(1008, "stale session")
                await ws.wait_closed()
                self.close_codes.append(ws.close_code)
                return
            self.received.append(await ws.recv())
            if self.behaviour == "reply":
                await ws.send(self.reply)
            elif self.behaviour == "reply_twice":
                await ws.send(self.reply)
                await ws.send('["session",[1,9999,0,0,0],null]')
                await ws.close(4000)
            elif self.behaviour == "close_normal":
                await ws.close(1000)
            elif self.behaviour == "close_busy":
                await ws.close(4001, "busy")
            elif self.behaviour == "abort":
                ws.transport.abort()
            elif self.behaviour == "stop_reading":
                # never reads the client's close frame until long after the timeout
                ws.transport.pause_reading()
                await asyncio.sleep(1)
                ws.transport.resume_reading()
            # "silent": never answer
            await ws.wait_closed()
            self.close_codes.append(ws.close_code)
        finally:
            self.handled.set()


@pytest_asyncio.fixture
async def charger():
    fake = FakeCharger()
    async with serve(fake.handler, "127.0.0.1", 0, process_request=fake.process_request) as server:
        port = next(iter(server.sockets)).getsockname()[1]
        fake.url = f"ws://127.0.0.1:{port}"
        yield fake

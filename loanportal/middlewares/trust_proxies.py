from starlette.types import ASGIApp, Receive, Scope, Send


def resolve_client_ip(forwarded_for: str, proxies_count: int) -> str | None:
    """Pick the client address from ``X-Forwarded-For`` given N trusted proxies.

    The header reads ``client, proxy1, ..., proxyN``; anything shorter than
    N + 1 hops cannot be trusted and yields ``None``.
    """
    hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
    if proxies_count <= 0 or len(hops) <= proxies_count:
        return None
    return hops[-(proxies_count + 1)]


class TrustedProxiesMiddleware:
    """Rewrite ``scope["client"]`` so rate limiting and logs see the real caller."""

    def __init__(self, app: ASGIApp, proxies_count: int = 1) -> None:
        self.app = app
        self.proxies_count = proxies_count

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            headers = dict(scope.get("headers", []))
            forwarded_for = headers.get(b"x-forwarded-for", b"").decode()
            client_ip = resolve_client_ip(forwarded_for, self.proxies_count) if forwarded_for else None
            if client_ip:
                port = scope["client"][1] if scope.get("client") else 0
                scope["client"] = (client_ip, port)

        await self.app(scope, receive, send)

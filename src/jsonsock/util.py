from asyncio import Transport


def get_local_addr(transport: Transport) -> tuple[str, int] | None:
    info = transport.get_extra_info("sockname")
    if info is not None and isinstance(info, (list, tuple)) and len(info) >= 2:
        return (str(info[0]), int(info[1]))
    return None


def get_remote_addr(transport: Transport) -> tuple[str, int] | None:
    info = transport.get_extra_info("peername")
    if info is not None and isinstance(info, (list, tuple)) and len(info) >= 2:
        return (str(info[0]), int(info[1]))
    return None


def format_addr(addr: tuple[str, int] | None) -> str:
    if addr is None:
        return "unknown"
    host, port = addr
    if ":" in host:
        # It's an IPv6 address.
        return f"[{host}]:{port}"
    return f"{host}:{port}"

import asyncio

from app.core.whitelist import WhitelistCache, extract_address
from app.tests.fakes import GRANTOR, OUTSIDER, whitelist_transport

URL = "https://whitelist.test/api/whitelist"


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def run(coro):
    return asyncio.run(coro)


def test_accepts_strings_and_objects_case_insensitively():
    wl = WhitelistCache(URL, transport=whitelist_transport([GRANTOR.upper().replace("0X", "0x"), {"address": OUTSIDER}, 42, {"name": "x"}]))
    assert run(wl.is_allowed(GRANTOR)) is True
    assert run(wl.is_allowed(OUTSIDER.upper().replace("0X", "0x"))) is True
    assert run(wl.addresses()) == frozenset({GRANTOR, OUTSIDER})


def test_answers_from_cache_within_ttl():
    calls = []
    clock = Clock()
    wl = WhitelistCache(URL, 300, transport=whitelist_transport(calls=calls), clock=clock)

    run(wl.is_allowed(GRANTOR))
    clock.now += 299
    run(wl.is_allowed(GRANTOR))
    assert len(calls) == 1

    clock.now += 2
    run(wl.is_allowed(GRANTOR))
    assert len(calls) == 2


def test_unreachable_source_without_cache_denies_everyone():
    wl = WhitelistCache(URL, transport=whitelist_transport(fail=True))
    assert run(wl.is_allowed(GRANTOR)) is False
    assert run(wl.addresses()) == frozenset()


def test_refresh_failure_keeps_previous_set():
    clock = Clock()
    wl = WhitelistCache(URL, 300, transport=whitelist_transport(), clock=clock)
    assert run(wl.is_allowed(GRANTOR)) is True

    wl._transport = whitelist_transport(fail=True)
    clock.now += 600
    assert run(wl.is_allowed(GRANTOR)) is True


def test_non_list_payload_is_a_failure():
    wl = WhitelistCache(URL, transport=whitelist_transport({"address": GRANTOR}))
    assert run(wl.is_allowed(GRANTOR)) is False


def test_concurrent_refreshes_are_coalesced():
    calls = []
    wl = WhitelistCache(URL, transport=whitelist_transport(calls=calls))

    async def burst():
        return await asyncio.gather(*(wl.is_allowed(GRANTOR) for _ in range(5)))

    assert run(burst()) == [True] * 5
    assert len(calls) == 1


def test_extract_address_field_order():
    body = {"from": "0xfrom", "sender": "0xsender", "address": "0xaddr"}
    assert extract_address(body, "address") == "0xaddr"
    assert extract_address(body, "grantor") == "0xsender"
    assert extract_address({"creator": " ", "participant": "0xp"}, "address") == "0xp"
    assert extract_address({"grantor": "0xg", "creator": "0xc"}, "grantor") == "0xg"
    assert extract_address({"recipient": "0xr"}, "address") is None
    assert extract_address(["0xa"], "address") is None

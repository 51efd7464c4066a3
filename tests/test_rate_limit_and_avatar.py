import pytest
from fastapi import HTTPException
from starlette.requests import Request

from alumnet.services import rate_limit
from alumnet.services.avatar import AVATAR_COLORS, avatar_color, get_initials


class FakeCounter:
    """Just enough of the redis counter API for fixed windows."""

    def __init__(self):
        self.counts = {}
        self.ttls = {}

    async def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds

    async def ttl(self, key):
        return self.ttls.get(key, -1)


def _request(headers=None, client=("10.0.0.9", 5555)):
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "POST", "path": "/", "headers": raw, "client": client})


def test_client_ip_prefers_first_forwarded_hop():
    assert rate_limit.client_ip(_request({"X-Forwarded-For": "1.2.3.4, 10.0.0.1"})) == "1.2.3.4"
    assert rate_limit.client_ip(_request()) == "10.0.0.9"
    assert rate_limit.client_ip(_request(client=None)) == "unknown"


@pytest.mark.asyncio
async def test_otp_request_limit_per_ip(monkeypatch):
    fake = FakeCounter()
    monkeypatch.setattr(rate_limit, "redis", fake)
    monkeypatch.setattr(rate_limit.S, "RL_OTP_REQ_PER_IP_10S", 2)
    req = _request()

    await rate_limit.limit_otp_request(req)
    await rate_limit.limit_otp_request(req)
    with pytest.raises(HTTPException) as ei:
        await rate_limit.limit_otp_request(req)
    assert ei.value.status_code == 429
    assert ei.value.headers["Retry-After"] == "10"
    assert fake.ttls == {"rl:otp:req:ip:10.0.0.9": 10}

    # other addresses have their own window
    await rate_limit.limit_otp_request(_request(client=("10.0.0.10", 1)))


def test_initials():
    assert get_initials("Ada Lovelace") == "AL"
    assert get_initials("  grace  brewster  hopper ") == "GH"
    assert get_initials("plato") == "P"
    assert get_initials("") == "U"
    assert get_initials(None) == "U"


def test_avatar_color_is_stable_and_from_palette():
    assert avatar_color("Ada") == avatar_color("Alan")
    assert avatar_color("Ada") in AVATAR_COLORS
    assert avatar_color(None) == avatar_color("User")

"""Best-effort IP geolocation.

Providers are tried in order, each with its own timeout. Any failure falls
through to the next one; when all fail the location is UNKNOWN_LOCATION.
resolve() never raises, so a geolocation outage cannot block a listing or
an order.
"""
import ipaddress
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from config.settings import settings

logger = logging.getLogger(__name__)

LOCAL_LOCATION = "local"
UNKNOWN_LOCATION = "unknown"


@dataclass(frozen=True)
class LocationProvider:
    name: str
    url_template: str  # formatted with ip=
    extract: Callable[[dict[str, Any]], str | None]
    params: dict[str, str] | None = None


def _ipapi_co(data: dict[str, Any]) -> str | None:
    return data.get("region") or None


def _ip_api_com(data: dict[str, Any]) -> str | None:
    if data.get("status") != "success":
        return None
    return data.get("regionName") or None


def _ip_sb(data: dict[str, Any]) -> str | None:
    return data.get("region") or None


DEFAULT_PROVIDERS: tuple[LocationProvider, ...] = (
    LocationProvider("ipapi.co", "https://ipapi.co/{ip}/json/", _ipapi_co),
    LocationProvider(
        "ip-api.com", "http://ip-api.com/json/{ip}", _ip_api_com, params={"lang": "zh-CN"}
    ),
    LocationProvider("ip.sb", "https://api.ip.sb/geoip/{ip}", _ip_sb),
)

# Provider regions arrive in English or Chinese; store the Chinese name.
_PROVINCES: dict[str, str] = {
    "Beijing": "北京", "Shanghai": "上海", "Tianjin": "天津", "Chongqing": "重庆",
    "Hebei": "河北", "Shanxi": "山西", "Inner Mongolia": "内蒙古", "Liaoning": "辽宁",
    "Jilin": "吉林", "Heilongjiang": "黑龙江", "Jiangsu": "江苏", "Zhejiang": "浙江",
    "Anhui": "安徽", "Fujian": "福建", "Jiangxi": "江西", "Shandong": "山东",
    "Henan": "河南", "Hubei": "湖北", "Hunan": "湖南", "Guangdong": "广东",
    "Guangxi": "广西", "Hainan": "海南", "Sichuan": "四川", "Guizhou": "贵州",
    "Yunnan": "云南", "Tibet": "西藏", "Shaanxi": "陕西", "Gansu": "甘肃",
    "Qinghai": "青海", "Ningxia": "宁夏", "Xinjiang": "新疆", "Taiwan": "台湾",
    "Hong Kong": "香港", "Macau": "澳门",
}


def normalize_region(region: str) -> str:
    """Map a provider region to a province name; unknown regions pass through."""
    region = region.strip()
    if region in _PROVINCES:
        return _PROVINCES[region]
    if region in _PROVINCES.values():
        return region
    # Longest key first so the most specific name wins
    for key in sorted(_PROVINCES, key=len, reverse=True):
        if key in region:
            return _PROVINCES[key]
    for name in _PROVINCES.values():
        if name in region:
            return name
    return region


def is_local_address(ip: str) -> bool:
    addr = ipaddress.ip_address(ip)
    return addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_unspecified


class IpLocationResolver:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        providers: tuple[LocationProvider, ...] = DEFAULT_PROVIDERS,
        timeout_seconds: float = 3.0,
        enabled: bool = True,
    ) -> None:
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        self._providers = providers
        self._timeout = timeout_seconds
        self._enabled = enabled

    async def aclose(self) -> None:
        await self._client.aclose()

    async def resolve(self, ip: str | None) -> str:
        if not ip:
            return UNKNOWN_LOCATION
        try:
            if is_local_address(ip):
                return LOCAL_LOCATION
        except ValueError:
            logger.debug("Unparseable client address: %r", ip)
            return UNKNOWN_LOCATION
        if not self._enabled:
            return UNKNOWN_LOCATION

        for provider in self._providers:
            location = await self._query(provider, ip)
            if location:
                return normalize_region(location)
        logger.warning("All IP location providers failed for %s", ip)
        return UNKNOWN_LOCATION

    async def _query(self, provider: LocationProvider, ip: str) -> str | None:
        try:
            resp = await self._client.get(
                provider.url_template.format(ip=ip),
                params=provider.params,
                timeout=self._timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("IP location provider %s failed: %s", provider.name, exc)
            return None
        if not isinstance(data, dict):
            return None
        return provider.extract(data)


_resolver: IpLocationResolver | None = None


def get_ip_resolver() -> IpLocationResolver:
    """Process-wide resolver sharing one connection pool."""
    global _resolver  # noqa: PLW0603
    if _resolver is None:
        _resolver = IpLocationResolver(
            timeout_seconds=settings.IP_LOCATION_TIMEOUT_SECONDS,
            enabled=settings.IP_LOCATION_ENABLED,
        )
    return _resolver


async def close_ip_resolver() -> None:
    global _resolver  # noqa: PLW0603
    if _resolver is not None:
        await _resolver.aclose()
        _resolver = None

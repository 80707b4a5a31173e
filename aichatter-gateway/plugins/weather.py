"""AI-Chatter: Weather plugin (/weather, /forecast) backed by Open-Meteo."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

import aiohttp

import bridge_config as cfg

from .base import CommandResult, Plugin, PluginCommand, UserIdentity

logger = logging.getLogger("aichatter.plugins.weather")

FetchJson = Callable[[str, dict[str, Any]], Awaitable[dict[str, Any]]]

# WMO weather interpretation codes, grouped.
_WEATHER_CODES: dict[int, tuple[str, str]] = {
    0: ("☀️", "Clear sky"),
    1: ("🌤️", "Mainly clear"),
    2: ("⛅", "Partly cloudy"),
    3: ("☁️", "Overcast"),
    45: ("🌫️", "Fog"),
    48: ("🌫️", "Rime fog"),
    51: ("🌦️", "Light drizzle"),
    53: ("🌦️", "Drizzle"),
    55: ("🌦️", "Dense drizzle"),
    61: ("🌧️", "Light rain"),
    63: ("🌧️", "Rain"),
    65: ("🌧️", "Heavy rain"),
    71: ("🌨️", "Light snow"),
    73: ("🌨️", "Snow"),
    75: ("❄️", "Heavy snow"),
    80: ("🌦️", "Rain showers"),
    81: ("🌧️", "Heavy showers"),
    82: ("⛈️", "Violent showers"),
    95: ("⛈️", "Thunderstorm"),
    96: ("⛈️", "Thunderstorm with hail"),
    99: ("⛈️", "Thunderstorm with heavy hail"),
}


def describe_weather(code: int | None) -> tuple[str, str]:
    return _WEATHER_CODES.get(int(code) if code is not None else -1, ("🌡️", "Unknown"))


async def _http_get_json(url: str, params: dict[str, Any]) -> dict[str, Any]:
    async with aiohttp.ClientSession() as session:
        async with session.get(
            url, params=params, timeout=aiohttp.ClientTimeout(total=cfg.WEATHER_HTTP_TIMEOUT_SECONDS)
        ) as resp:
            resp.raise_for_status()
            return await resp.json()


def _split_city_country(args: list[str]) -> tuple[str, str]:
    if len(args) > 1 and len(args[-1]) == 2 and args[-1].isalpha():
        return " ".join(args[:-1]), args[-1].upper()
    return " ".join(args), ""


class WeatherPlugin(Plugin):
    id = "weather"
    name = "Weather Plugin"
    version = "1.0.0"
    description = "Get weather information for any location"
    author = "AI Chatter Team"

    def __init__(self, fetch_json: FetchJson | None = None) -> None:
        self._fetch_json = fetch_json or _http_get_json
        super().__init__()

    def get_commands(self) -> list[PluginCommand]:
        return [
            PluginCommand(
                name="weather",
                description="Get current weather for a location",
                usage="/weather <city> [country]",
                examples=["/weather London", "/weather New York US", "/weather Tokyo JP"],
                handler=self.handle_weather,
            ),
            PluginCommand(
                name="forecast",
                description="Get weather forecast for a location",
                usage="/forecast <city> [days]",
                examples=["/forecast London 5", "/forecast Paris 3"],
                handler=self.handle_forecast,
            ),
        ]

    async def _geocode(self, city: str, country: str = "") -> dict[str, Any] | None:
        params: dict[str, Any] = {"name": city, "count": 1, "language": "en", "format": "json"}
        if country:
            params["countryCode"] = country
        data = await self._fetch_json(cfg.WEATHER_GEOCODING_URL, params)
        results = data.get("results") or []
        return results[0] if results else None

    async def handle_weather(self, args: list[str], sender: UserIdentity, channel_id) -> CommandResult:
        if not args:
            return CommandResult.fail("❌ City is required", "Usage: /weather <city> [country]")
        city, country = _split_city_country(args)
        try:
            place = await self._geocode(city, country)
            if place is None:
                return CommandResult.fail(f"❌ Location not found: {city}", "No geocoding match")
            data = await self._fetch_json(cfg.WEATHER_FORECAST_URL, {
                "latitude": place["latitude"],
                "longitude": place["longitude"],
                "current": "temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code",
                "timezone": "auto",
            })
        except (aiohttp.ClientError, asyncio.TimeoutError, KeyError) as exc:
            logger.warning("Weather lookup failed for %s: %s", city, exc)
            return CommandResult.fail(f"❌ Error getting weather for {city}", str(exc))

        current = data.get("current") or {}
        icon, label = describe_weather(current.get("weather_code"))
        where = place.get("name", city) + (f", {place['country']}" if place.get("country") else "")
        message = (
            f"{icon} *Weather for {where}*\n\n"
            f"🌡️ Temperature: {current.get('temperature_2m', '?')}°C\n"
            f"☁️ Condition: {label}\n"
            f"💧 Humidity: {current.get('relative_humidity_2m', '?')}%\n"
            f"💨 Wind: {current.get('wind_speed_10m', '?')} km/h"
        )
        return CommandResult.ok(message, data={"location": where, "current": current})

    async def handle_forecast(self, args: list[str], sender: UserIdentity, channel_id) -> CommandResult:
        if not args:
            return CommandResult.fail("❌ City is required", "Usage: /forecast <city> [days]")
        days = 3
        if len(args) > 1 and args[-1].lstrip("-").isdigit():
            days = int(args[-1])
            args = args[:-1]
        if not 1 <= days <= 7:
            return CommandResult.fail("❌ Days must be between 1 and 7", "Usage: /forecast <city> [days]")
        city, country = _split_city_country(args)
        try:
            place = await self._geocode(city, country)
            if place is None:
                return CommandResult.fail(f"❌ Location not found: {city}", "No geocoding match")
            data = await self._fetch_json(cfg.WEATHER_FORECAST_URL, {
                "latitude": place["latitude"],
                "longitude": place["longitude"],
                "daily": "temperature_2m_max,temperature_2m_min,weather_code",
                "forecast_days": days,
                "timezone": "auto",
            })
        except (aiohttp.ClientError, asyncio.TimeoutError, KeyError) as exc:
            logger.warning("Forecast lookup failed for %s: %s", city, exc)
            return CommandResult.fail(f"❌ Error getting forecast for {city}", str(exc))

        daily = data.get("daily") or {}
        dates = daily.get("time") or []
        highs = daily.get("temperature_2m_max") or []
        lows = daily.get("temperature_2m_min") or []
        codes = daily.get("weather_code") or []
        lines = [f"📅 *{days}-Day Forecast for {place.get('name', city)}*", ""]
        for i, day in enumerate(dates[:days]):
            icon, label = describe_weather(codes[i] if i < len(codes) else None)
            high = highs[i] if i < len(highs) else "?"
            low = lows[i] if i < len(lows) else "?"
            lines.append(f"{icon} {day}: {label}, {low}°C to {high}°C")
        return CommandResult.ok("\n".join(lines), data={"location": place.get("name", city), "daily": daily})

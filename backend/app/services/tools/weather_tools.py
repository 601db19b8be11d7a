"""Weather lookup tool backed by the Open-Meteo forecast API."""

import logging
from typing import Any

import httpx

from app.core.config import settings
from app.services.tools.base import BaseTool, ToolContext, ToolDefinition, ToolParameter

logger = logging.getLogger(__name__)


class GetWeatherTool(BaseTool):
    def __init__(self, context: ToolContext | None = None, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(context)
        self._transport = transport

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name="getWeather",
            description="Get the current weather at a location",
            parameters=[
                ToolParameter(name="latitude", type="number"),
                ToolParameter(name="longitude", type="number"),
            ],
        )

    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        params = {
            "latitude": kwargs["latitude"],
            "longitude": kwargs["longitude"],
            "current": "temperature_2m",
            "hourly": "temperature_2m",
            "daily": "sunrise,sunset",
            "timezone": "auto",
        }
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.get(settings.weather_api_url, params=params)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Weather lookup failed for {params['latitude']},{params['longitude']}: {e}")
            return {"error": f"Weather service error: {e}"}

"""Página de estado en HTML."""

from html import escape

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from common.config import Settings, get_settings

router = APIRouter(tags=["status"])


@router.get("/", response_class=HTMLResponse)
def status_page(settings: Settings = Depends(get_settings)):
    mqtt = settings.mqtt
    broker = escape(f"mqtt://{mqtt.broker_host}:{mqtt.broker_port}")
    return f"""
    <h2>Sensor bridge activo</h2>
    <p>Broker: <b>{broker}</b></p>
    <ul>
      <li>Topic suhu: <code>{escape(mqtt.topic_temperature)}</code></li>
      <li>Topic LDR: <code>{escape(mqtt.topic_brightness)}</code></li>
      <li><a href="/api/sensor">/api/sensor</a> → datos JSON</li>
    </ul>
    """

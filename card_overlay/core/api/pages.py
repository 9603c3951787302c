"""HTML for the overlay pages served to browser sources."""

from __future__ import annotations

import html
import re

from card_overlay.core.overlay_state import CardData, OverlayConfig


_PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{TITLE}}</title>
  <style>
    * { margin: 0; padding: 0; box-sizing: border-box; }

    body {
      width: 100vw;
      height: 100vh;
      overflow: hidden;
      background: {{BACKGROUND}};
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
    }

    #webcam-feed {
      position: absolute;
      top: 0;
      left: 0;
      width: 100%;
      height: 100%;
      object-fit: cover;
      z-index: 1;
    }

    #overlay-container { position: absolute; z-index: 10; transition: all 0.3s ease; }
    #overlay-container.top-left { top: var(--overlay-y, 50px); left: var(--overlay-x, 50px); }
    #overlay-container.top-right { top: var(--overlay-y, 50px); right: var(--overlay-x, 50px); }
    #overlay-container.bottom-left { bottom: var(--overlay-y, 50px); left: var(--overlay-x, 50px); }
    #overlay-container.bottom-right { bottom: var(--overlay-y, 50px); right: var(--overlay-x, 50px); }
    #overlay-container.center {
      top: 50%;
      left: 50%;
      transform: translate(calc(-50% + var(--overlay-x, 0px)), calc(-50% + var(--overlay-y, 0px)));
    }

    .card-overlay {
      background: rgba(0, 0, 0, 0.75);
      backdrop-filter: blur(10px);
      border-radius: 16px;
      padding: 24px 32px;
      min-width: 300px;
      border: 2px solid rgba(255, 255, 255, 0.1);
      box-shadow: 0 8px 32px rgba(0, 0, 0, 0.5);
      animation: slideIn 0.5s ease-out;
    }

    @keyframes slideIn {
      from { opacity: 0; transform: translateY(-20px); }
      to { opacity: 1; transform: translateY(0); }
    }

    .card-name { font-size: 28px; font-weight: 700; color: #fff; margin-bottom: 8px; text-shadow: 0 2px 4px rgba(0, 0, 0, 0.5); }
    .card-price {
      font-size: 36px;
      font-weight: 800;
      background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
      -webkit-background-clip: text;
      -webkit-text-fill-color: transparent;
      background-clip: text;
      margin-bottom: 12px;
    }
    .card-details { display: flex; gap: 16px; font-size: 14px; color: rgba(255, 255, 255, 0.7); }
    .card-detail { display: flex; align-items: center; gap: 4px; }
    .card-detail-label { font-weight: 600; color: rgba(255, 255, 255, 0.5); }
  </style>
  <style id="custom-css">{{CUSTOM_CSS}}</style>
</head>
<body>
  {{WEBCAM}}
  <div id="overlay-container" class="{{ANCHOR}}" style="--overlay-x: {{OFFSET_X}}px; --overlay-y: {{OFFSET_Y}}px;">
    <div class="card-overlay">
      <div class="card-name" id="card-name">{{NAME}}</div>
      <div class="card-price" id="card-price">{{PRICE}}</div>
      <div class="card-details">
        <div class="card-detail"><span class="card-detail-label">Set:</span><span id="card-set">{{SET}}</span></div>
        <div class="card-detail"><span class="card-detail-label">Rarity:</span><span id="card-rarity">{{RARITY}}</span></div>
      </div>
    </div>
  </div>

  <script>
    const scheme = window.location.protocol === 'https:' ? 'wss://' : 'ws://';
    const ws = new WebSocket(scheme + window.location.host + '/ws');

    ws.onopen = () => {
      fetchJson('/api/card-data', updateCardData);
      fetchJson('/api/config', updateConfig);
    };

    ws.onmessage = (event) => {
      const message = JSON.parse(event.data);
      if (message.type === 'card-data') {
        updateCardData(message.payload);
      } else if (message.type === 'config') {
        updateConfig(message.payload);
      } else if (message.type === 'video-frame') {
        const img = document.getElementById('webcam-feed');
        if (img) img.src = message.payload;
      }
    };

    ws.onclose = () => {
      setTimeout(() => window.location.reload(), 3000);
    };

    async function fetchJson(url, apply) {
      try {
        const response = await fetch(url);
        apply(await response.json());
      } catch (error) {
        console.error('Error fetching ' + url, error);
      }
    }

    function updateCardData(data) {
      document.getElementById('card-name').textContent = data.name || 'Unknown Card';
      document.getElementById('card-price').textContent = data.price || '$0.00';
      document.getElementById('card-set').textContent = data.set || '-';
      document.getElementById('card-rarity').textContent = data.rarity || '-';
    }

    function updateConfig(config) {
      const container = document.getElementById('overlay-container');
      container.className = config.anchor || 'top-left';
      container.style.setProperty('--overlay-x', (config.offsetX || 0) + 'px');
      container.style.setProperty('--overlay-y', (config.offsetY || 0) + 'px');
      document.getElementById('custom-css').textContent = config.customCss || '';
    }
  </script>
</body>
</html>
"""

_PLACEHOLDER = re.compile(r"\{\{([A-Z_]+)\}\}")

_WEBCAM_ELEMENT = '<img id="webcam-feed" alt="">'

_INDEX_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>Card Overlay</title></head>
<body style="font-family: sans-serif; padding: 24px;">
  <h1>Card Overlay</h1>
  <ul>
    <li><a href="/overlay">/overlay</a> card only</li>
    <li><a href="/overlay-webcam">/overlay-webcam</a> card over live video</li>
    <li><a href="/api/card-data">/api/card-data</a></li>
    <li><a href="/api/config">/api/config</a></li>
  </ul>
</body>
</html>
"""


def _style_text(css: str) -> str:
    # Stop custom CSS from closing the <style> element early
    return css.replace("</", "<\\/")


def render_overlay_page(card: CardData, config: OverlayConfig, *, include_webcam: bool = False) -> str:
    """Render an overlay page pre-filled with the current snapshots."""
    replacements = {
        "TITLE": "Card Overlay + Webcam" if include_webcam else "Card Overlay",
        "BACKGROUND": "#000" if include_webcam else "transparent",
        "WEBCAM": _WEBCAM_ELEMENT if include_webcam else "",
        "ANCHOR": config.anchor.value,
        "OFFSET_X": str(config.offset_x),
        "OFFSET_Y": str(config.offset_y),
        "NAME": html.escape(card.name or "Unknown Card"),
        "PRICE": html.escape(card.price or "$0.00"),
        "SET": html.escape(card.card_set or "-"),
        "RARITY": html.escape(card.rarity or "-"),
        "CUSTOM_CSS": _style_text(config.custom_css),
    }
    # Single pass, so text inside the values is never expanded
    return _PLACEHOLDER.sub(lambda match: replacements[match.group(1)], _PAGE_TEMPLATE)


def render_index_page() -> str:
    return _INDEX_TEMPLATE


__all__ = ["render_index_page", "render_overlay_page"]

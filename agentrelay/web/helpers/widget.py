from __future__ import annotations

import html
import json
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, urlencode

from agentrelay.constants import (
    WIDGET_DEFAULT_COLOR,
    WIDGET_DEFAULT_POSITION,
    WIDGET_DEFAULT_THEME,
    WIDGET_DEFAULT_WELCOME,
    WIDGET_ERROR_MESSAGE,
    WIDGET_IFRAME_HEIGHT,
    WIDGET_IFRAME_WIDTH,
    WIDGET_POSITIONS,
    WIDGET_THEMES,
)
from agentrelay.models import Agent
from agentrelay.utils.text import choice_or_default, css_color_or_default, parse_flag

_LIGHT_VARS = "--panel-bg: #ffffff; --body-bg: #f8f9fa; --text: #212529; --bubble-bg: #ffffff; --border: #e9ecef; --input-bg: #ffffff;"
_DARK_VARS = "--panel-bg: #1f2330; --body-bg: #151821; --text: #e9ecef; --bubble-bg: #2a2f3d; --border: #343a4a; --input-bg: #232838;"


@dataclass(frozen=True)
class WidgetOptions:
    theme: str = WIDGET_DEFAULT_THEME
    enable_audio: bool = True
    primary_color: str = WIDGET_DEFAULT_COLOR
    position: str = WIDGET_DEFAULT_POSITION
    welcome_message: str = WIDGET_DEFAULT_WELCOME

    @classmethod
    def from_query(
        cls,
        *,
        theme: Optional[str] = None,
        enable_audio: Optional[str] = None,
        primary_color: Optional[str] = None,
        position: Optional[str] = None,
        welcome_message: Optional[str] = None,
    ) -> "WidgetOptions":
        return cls(
            theme=choice_or_default(theme, WIDGET_THEMES, WIDGET_DEFAULT_THEME),
            enable_audio=parse_flag(enable_audio, default=True),
            primary_color=css_color_or_default(primary_color, WIDGET_DEFAULT_COLOR),
            position=choice_or_default(position, WIDGET_POSITIONS, WIDGET_DEFAULT_POSITION),
            welcome_message=(welcome_message or "").strip() or WIDGET_DEFAULT_WELCOME,
        )

    def query_params(self) -> dict[str, str]:
        params = {
            "theme": self.theme,
            "enableAudio": "true" if self.enable_audio else "false",
            "primaryColor": self.primary_color,
        }
        if self.position != WIDGET_DEFAULT_POSITION:
            params["position"] = self.position
        if self.welcome_message != WIDGET_DEFAULT_WELCOME:
            params["welcomeMessage"] = self.welcome_message
        return params


def widget_url(base_url: str, slug: str, options: WidgetOptions) -> str:
    return f"{base_url.rstrip('/')}/api/widget/{quote(slug)}?{urlencode(options.query_params())}"


def embed_snippets(*, agent: Agent, url: str) -> dict[str, str]:
    title = html.escape(f"Chat Widget {agent.name}", quote=True)
    src = html.escape(url, quote=True)
    iframe = (
        f"<!-- Chat widget - {html.escape(agent.name)} -->\n"
        "<iframe\n"
        f'  src="{src}"\n'
        f'  width="{WIDGET_IFRAME_WIDTH}"\n'
        f'  height="{WIDGET_IFRAME_HEIGHT}"\n'
        '  frameborder="0"\n'
        f'  title="{title}"\n'
        '  allow="microphone">\n'
        "</iframe>"
    )
    script = (
        "<script>\n"
        "(function() {\n"
        "  var iframe = document.createElement('iframe');\n"
        f"  iframe.src = {_js(url)};\n"
        "  iframe.style.position = 'fixed';\n"
        "  iframe.style.bottom = '0';\n"
        "  iframe.style.right = '0';\n"
        f"  iframe.style.width = '{WIDGET_IFRAME_WIDTH}px';\n"
        f"  iframe.style.height = '{WIDGET_IFRAME_HEIGHT}px';\n"
        "  iframe.style.border = 'none';\n"
        "  iframe.style.zIndex = '9999';\n"
        "  iframe.allow = 'microphone';\n"
        "  document.body.appendChild(iframe);\n"
        "})();\n"
        "</script>"
    )
    return {"widgetUrl": url, "iframe": iframe, "script": script}


def _js(value) -> str:
    # JSON literal that cannot terminate the surrounding <script> element.
    return json.dumps(value, ensure_ascii=False).replace("</", "<\\/")


def _theme_css(theme: str) -> str:
    if theme == "dark":
        return f":root {{ {_DARK_VARS} }}"
    if theme == "auto":
        return f":root {{ {_LIGHT_VARS} }}\n    @media (prefers-color-scheme: dark) {{ :root {{ {_DARK_VARS} }} }}"
    return f":root {{ {_LIGHT_VARS} }}"


def render_widget_html(*, agent: Agent, options: WidgetOptions, relay_url: str) -> str:
    color = options.primary_color
    side = "left" if options.position == "bottom-left" else "right"
    name = html.escape(agent.name)
    welcome = html.escape(options.welcome_message)
    mic_button = ""
    if options.enable_audio:
        mic_button = (
            '<button type="button" class="mic" id="micButton" title="Record a voice message" onclick="toggleRecording()">'
            '<svg width="16" height="16" viewBox="0 0 24 24" fill="currentColor">'
            '<path d="M12 14a3 3 0 0 0 3-3V5a3 3 0 0 0-6 0v6a3 3 0 0 0 3 3zm5-3a5 5 0 0 1-10 0H5a7 7 0 0 0 6 6.92V21h2v-3.08A7 7 0 0 0 19 11h-2z"/>'
            "</svg></button>"
        )
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{name} - Chat</title>
  <style>
    {_theme_css(options.theme)}
    body {{ margin: 0; font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial; }}
    .chat-widget {{
      position: fixed; bottom: 20px; {side}: 20px; width: 60px; height: 60px;
      background: {color};
      border-radius: 50%; cursor: pointer; display: flex; align-items: center; justify-content: center;
      box-shadow: 0 4px 12px rgba(0,0,0,0.15); z-index: 1000; transition: all 0.3s ease;
    }}
    .chat-widget:hover {{ transform: scale(1.1); }}
    .chat-widget svg {{ width: 24px; height: 24px; fill: white; }}
    .chat-popup {{
      position: fixed; bottom: 90px; {side}: 20px; width: 350px; height: 500px;
      background: var(--panel-bg); color: var(--text); border-radius: 12px;
      box-shadow: 0 8px 32px rgba(0,0,0,0.2); display: none; flex-direction: column; z-index: 1001; overflow: hidden;
    }}
    .chat-popup.open {{ display: flex; }}
    .chat-header {{
      background: {color};
      color: white; padding: 16px; display: flex; align-items: center; gap: 10px;
    }}
    .chat-header .title {{ font-weight: bold; }}
    .chat-body {{ flex: 1; padding: 16px; overflow-y: auto; background: var(--body-bg); }}
    .chat-input {{ padding: 16px; border-top: 1px solid var(--border); background: var(--panel-bg); display: flex; gap: 8px; }}
    .chat-input input {{
      flex: 1; padding: 8px 12px; border: 1px solid var(--border); border-radius: 20px; outline: none;
      background: var(--input-bg); color: var(--text);
    }}
    .chat-input button {{
      background: {color};
      color: white; border: none; border-radius: 50%; width: 36px; height: 36px; cursor: pointer;
      display: flex; align-items: center; justify-content: center;
    }}
    .chat-input button.mic.recording {{ background: #dc3545; }}
    .message {{ margin-bottom: 12px; display: flex; align-items: flex-start; gap: 8px; }}
    .message.user {{ flex-direction: row-reverse; }}
    .message-content {{ max-width: 80%; padding: 8px 12px; border-radius: 12px; background: var(--bubble-bg); word-wrap: break-word; }}
    .message.user .message-content {{
      background: {color};
      color: white;
    }}
    .message-avatar {{
      width: 24px; height: 24px; border-radius: 50%; background: #6c757d; display: flex; align-items: center;
      justify-content: center; color: white; font-size: 12px; flex-shrink: 0;
    }}
  </style>
</head>
<body>
  <div class="chat-widget" onclick="toggleChat()">
    <svg viewBox="0 0 24 24"><path d="M20 2H4c-1.1 0-2 .9-2 2v12c0 1.1.9 2 2 2h4l4 4 4-4h4c1.1 0 2-.9 2-2V4c0-1.1-.9-2-2-2z"/></svg>
  </div>

  <div class="chat-popup" id="chatPopup">
    <div class="chat-header">
      <div class="message-avatar">A</div>
      <div class="title">{name}</div>
    </div>
    <div class="chat-body" id="chatBody">
      <div class="message assistant">
        <div class="message-avatar">B</div>
        <div class="message-content">{welcome}</div>
      </div>
    </div>
    <div class="chat-input">
      <input type="text" id="messageInput" placeholder="Type your message..." onkeypress="handleKeyPress(event)">
      {mic_button}
      <button type="button" onclick="sendMessage()" title="Send">
        <svg width="16" height="16" viewBox="0 0 24 24" fill="currentColor"><path d="M2.01 21L23 12 2.01 3 2 10l15 2-15 2z"/></svg>
      </button>
    </div>
  </div>

  <script>
    const RELAY_URL = {_js(relay_url)};
    const AGENT_SLUG = {_js(agent.slug)};
    const ERROR_MESSAGE = {_js(WIDGET_ERROR_MESSAGE)};
    const sessionId = newSessionId();
    let recorder = null;
    let chunks = [];

    function newSessionId() {{
      const alphabet = 'abcdefghijklmnopqrstuvwxyz0123456789';
      const bytes = new Uint8Array(12);
      crypto.getRandomValues(bytes);
      return 'session_' + Array.from(bytes, (b) => alphabet[b % alphabet.length]).join('');
    }}

    function toggleChat() {{
      document.getElementById('chatPopup').classList.toggle('open');
    }}

    function handleKeyPress(event) {{
      if (event.key === 'Enter') {{
        sendMessage();
      }}
    }}

    function sendMessage() {{
      const input = document.getElementById('messageInput');
      const message = input.value.trim();
      if (!message) return;
      input.value = '';
      relayMessage(message, null);
    }}

    async function relayMessage(content, audioData) {{
      const userBubble = addMessage(audioData ? '\\u{{1F3A4}} ...' : content, 'user');
      const body = {{ content: content, agentSlug: AGENT_SLUG, sessionId: sessionId }};
      if (audioData) body.audioData = audioData;
      try {{
        const response = await fetch(RELAY_URL, {{
          method: 'POST',
          headers: {{ 'Content-Type': 'application/json' }},
          body: JSON.stringify(body),
        }});
        if (!response.ok) throw new Error('HTTP ' + response.status);
        const data = await response.json();
        const messages = (data.thread && data.thread.messages) || [];
        if (audioData && messages.length >= 2) {{
          userBubble.textContent = messages[messages.length - 2].content;
        }}
        if (data.message) {{
          addMessage(data.message.content, 'assistant');
        }}
      }} catch (error) {{
        console.error('Error sending message:', error);
        addMessage(ERROR_MESSAGE, 'assistant');
      }}
    }}

    function blobToBase64(blob) {{
      return new Promise((resolve, reject) => {{
        const reader = new FileReader();
        reader.onloadend = () => resolve(String(reader.result).split(',')[1] || '');
        reader.onerror = reject;
        reader.readAsDataURL(blob);
      }});
    }}

    async function toggleRecording() {{
      const micButton = document.getElementById('micButton');
      if (recorder && recorder.state === 'recording') {{
        recorder.stop();
        return;
      }}
      try {{
        const stream = await navigator.mediaDevices.getUserMedia({{ audio: true }});
        chunks = [];
        recorder = new MediaRecorder(stream);
        recorder.ondataavailable = (event) => {{
          if (event.data.size > 0) chunks.push(event.data);
        }};
        recorder.onstop = async () => {{
          stream.getTracks().forEach((track) => track.stop());
          micButton.classList.remove('recording');
          const blob = new Blob(chunks, {{ type: recorder.mimeType || 'audio/webm' }});
          const audioData = await blobToBase64(blob);
          if (audioData) relayMessage('', audioData);
        }};
        recorder.start();
        micButton.classList.add('recording');
      }} catch (error) {{
        console.error('Error recording audio:', error);
        addMessage(ERROR_MESSAGE, 'assistant');
      }}
    }}

    function addMessage(content, role) {{
      const chatBody = document.getElementById('chatBody');
      const messageDiv = document.createElement('div');
      messageDiv.className = 'message ' + role;

      const avatar = document.createElement('div');
      avatar.className = 'message-avatar';
      avatar.textContent = role === 'user' ? 'U' : 'B';

      const messageContent = document.createElement('div');
      messageContent.className = 'message-content';
      messageContent.textContent = content;

      messageDiv.appendChild(avatar);
      messageDiv.appendChild(messageContent);
      chatBody.appendChild(messageDiv);
      chatBody.scrollTop = chatBody.scrollHeight;
      return messageContent;
    }}
  </script>
</body>
</html>
"""

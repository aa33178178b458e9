# voicerelay/api/__init__.py
# ===========================
# HTTP / WebSocket surface — VoiceRelay
#
#   - control.py: status, settings get/set, translation start/stop
#   - voice.py:   per-speaker audio ingress, single playback egress
#   - app.py:     create_app(config) factory

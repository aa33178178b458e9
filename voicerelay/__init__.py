# voicerelay/__init__.py
# =======================
# VoiceRelay — live voice translation relay
#
# Pipeline:
#   audio frames → capture (per speaker) → size guard
#     → transcribe → route/translate → synthesize → playback queue → output

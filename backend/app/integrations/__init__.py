"""
External services the pipeline talks to: the reasoning model (Gemini)
and the outbound messaging channel (LINE).
"""

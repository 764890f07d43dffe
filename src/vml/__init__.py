"""vml — build/render orchestrator for VideoML compositions.

Resolve source files, generate script/timeline/audio artifacts for each
composition through a pluggable toolchain, watch sources for changes, and
hand generated artifacts to a frame renderer + ffmpeg to produce a video.
"""

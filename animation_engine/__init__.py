"""Animation engine - block-based image generation pipeline for participant submissions."""

"""Pure algorithms: code codec, slug generation, URL and user-agent handling."""

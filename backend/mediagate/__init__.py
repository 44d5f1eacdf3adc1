"""MediaGate: unified image/video generation gateway."""

"""ASGI entrypoint for the campus site API."""

from campus_site.api.app import create_app
from campus_site.containers import build_container

app = create_app(build_container())

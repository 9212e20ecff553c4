"""Game services: level loading, live sessions and storage.

Routes and socket handlers import from here, keeping transport concerns
separated from the engine in ``spotdiff.services.engine``.
"""

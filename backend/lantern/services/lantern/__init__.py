"""Lantern Network game services.

Registries (stations, teams, round), the credential pool, the hack session
engine, the calibration mission tracker and the score aggregator. HTTP
routes and socket handlers import from here, keeping transport concerns
separated from the game rules. Every read and write goes through
``lantern.storage``.
"""

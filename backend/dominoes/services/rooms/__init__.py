"""Multiplayer rooms: lobby protocol and game-state replication.

Rooms live in a key-value broadcast store; every participant runs its own
RoomService and the host is the only writer of game state.
"""

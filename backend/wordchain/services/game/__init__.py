"""Game domain services: turn rules, room store and coordinator.

Pure turn logic lives in ``turns``; ``store`` owns every read and guarded
write against the room tables; ``coordinator`` combines the two and is the
single mutation path used by both the HTTP routes and the socket handlers.
"""

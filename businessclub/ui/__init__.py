"""Text rendering and input helpers for a game client's views."""
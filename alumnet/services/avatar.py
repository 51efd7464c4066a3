from __future__ import annotations

AVATAR_COLORS = ("#F87171", "#FBBF24", "#34D399", "#60A5FA", "#A78BFA", "#F472B6")


def get_initials(name: str | None = "User") -> str:
    parts = (name or "").split()
    if not parts:
        return "U"
    if len(parts) == 1:
        return parts[0][0].upper()
    return (parts[0][0] + parts[-1][0]).upper()


def avatar_color(name: str | None = "User") -> str:
    name = name or "User"
    return AVATAR_COLORS[ord(name[0]) % len(AVATAR_COLORS)]

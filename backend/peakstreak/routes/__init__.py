"""
PeakStreak Backend: API Routes Package
=======================================

Route Inventory:
    - auth.py:    POST /api/auth/signup, POST /api/auth/login
    - users.py:   /api/me, /api/me/avatar, /api/users/search,
                  /api/users/{username}[/followers|/following|/follow]
    - habits.py:  /api/habits, /api/habits/{id}, /api/habits/{id}/logs
    - feed.py:    GET /api/leaderboard, GET /api/explore
    - health.py:  GET /health

Routes are THIN: pull data out of the request, call one service method,
return its result. Errors are raised, never turned into responses here;
`register_exception_handlers()` maps them to status codes.
"""

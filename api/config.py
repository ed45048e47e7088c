# Browser session
SESSION_COOKIE = "hr_portal_session"
SESSION_TTL = 3600          # 1 hour of inactivity ends the browsing context
CLEANUP_INTERVAL = 300      # expired session sweep every 5 minutes

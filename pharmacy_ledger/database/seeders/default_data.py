from ...constants import SYSTEM_USERNAME


def seed(conn):
    # the 'system' actor owns automated postings; created once
    row = conn.execute("SELECT COUNT(*) AS n FROM users WHERE username=?", (SYSTEM_USERNAME,)).fetchone()
    if row and row[0] == 0:
        conn.execute(
            """
            INSERT INTO users(username, full_name, role, is_active)
            VALUES (?, ?, ?, 1)
            """,
            (SYSTEM_USERNAME, "System", "admin"),
        )

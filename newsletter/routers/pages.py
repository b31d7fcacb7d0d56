"""
HTML Pages
Minimal server-rendered pages for the login and admin area
"""

from html import escape
from typing import List


def render_flash_messages(messages: List[dict]) -> str:
    return "".join(f"<p><i>{escape(m['message'])}</i></p>" for m in messages)


def page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta http-equiv="content-type" content="text/html; charset=utf-8">
    <title>{escape(title)}</title>
</head>
<body>
{body}
</body>
</html>"""


def login_page(messages: List[dict]) -> str:
    return page("Login", f"""
    {render_flash_messages(messages)}
    <form action="/login" method="post">
        <label>Username
            <input type="text" placeholder="Enter Username" name="username">
        </label>
        <label>Password
            <input type="password" placeholder="Enter Password" name="password">
        </label>
        <button type="submit">Login</button>
    </form>""")


def dashboard_page(username: str) -> str:
    return page("Admin dashboard", f"""
    <p>Welcome {escape(username)}!</p>
    <p>Available actions:</p>
    <ol>
        <li><a href="/admin/newsletter">Send a newsletter issue</a></li>
        <li><a href="/admin/password">Change password</a></li>
        <li>
            <form name="logoutForm" action="/admin/logout" method="post">
                <input type="submit" value="Logout">
            </form>
        </li>
    </ol>""")


def newsletter_form_page(messages: List[dict], idempotency_key: str) -> str:
    return page("Send a newsletter issue", f"""
    <h1>Submit Your Newsletter</h1>
    {render_flash_messages(messages)}
    <form action="/admin/newsletter" method="post">
        <label for="title">Title:</label><br>
        <input type="text" id="title" name="title" required><br><br>

        <label for="text">Plain text content:</label><br>
        <textarea id="text" name="text" rows="20" cols="50" required></textarea><br><br>

        <label for="html">HTML content:</label><br>
        <textarea id="html" name="html" rows="20" cols="50" required></textarea><br><br>

        <input hidden type="text" name="idempotency_key" value="{escape(idempotency_key)}">
        <button type="submit">Publish</button>
    </form>
    <p><a href="/admin/dashboard">&lt;- Back</a></p>""")


def change_password_page(messages: List[dict]) -> str:
    return page("Change Password", f"""
    {render_flash_messages(messages)}
    <form action="/admin/password" method="post">
        <label>Current password
            <input type="password" placeholder="Enter current password" name="current_password">
        </label>
        <br>
        <label>New password
            <input type="password" placeholder="Enter new password" name="new_password">
        </label>
        <br>
        <label>Confirm new password
            <input type="password" placeholder="Type the new password again" name="new_password_check">
        </label>
        <br>
        <button type="submit">Change password</button>
    </form>
    <p><a href="/admin/dashboard">&lt;- Back</a></p>""")

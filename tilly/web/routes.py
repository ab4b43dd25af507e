from flask import Blueprint, current_app, render_template_string, request
from flask_login import current_user

web_bp = Blueprint('web', __name__)

ERROR_MESSAGES = {
    'auth': 'Sign-in did not complete. Please try again.',
    'login_failed': 'Could not start sign-in. Please try again later.',
}


@web_bp.route('/')
def index():
    """Landing page; the task UI itself is served separately"""
    config = current_app.config['TILLY_CONFIG']
    error = ERROR_MESSAGES.get(request.args.get('error', ''))
    uses_cookies = current_app.config['SESSION_VERIFIER'].uses_cookies

    return render_template_string('''
        <html>
        <head><title>{{ name|title }}</title></head>
        <body style="font-family: sans-serif; max-width: 600px; margin: 50px auto; text-align: center;">
            <h1>{{ emoji }} {{ name|title }}</h1>
            <p>{{ description }}</p>
            {% if error %}<p style="color: #991b1b;">{{ error }}</p>{% endif %}
            {% if user %}
                <p>Signed in as {{ user.email }}</p>
            {% elif uses_cookies %}
                <p><a href="{{ url_for('auth.login') }}">Sign in with Google</a></p>
            {% endif %}
        </body>
        </html>
    ''', name=config.name, emoji=config.emoji, description=config.description,
        error=error, uses_cookies=uses_cookies,
        user=current_user if current_user.is_authenticated else None)

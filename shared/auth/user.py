"""
Shared User class for Flask-Login authentication.
"""
from flask_login import UserMixin


class User(UserMixin):
    """
    User model for Flask-Login.

    Attributes:
        id: Identity provider's subject id
        email: User's email address
        access_token: Provider access token the user was verified with
    """

    def __init__(self, user_id: str, email: str = None, access_token: str = None):
        """
        Initialize a User.

        Args:
            user_id: Subject id issued by the identity provider
            email: User's email address (may be missing for non-email identities)
            access_token: Token used to act on the user's behalf
        """
        self.id = user_id
        self.email = email
        self.access_token = access_token

    @staticmethod
    def from_provider_info(user_info: dict, access_token: str = None) -> 'User':
        """
        Create a User from the identity provider's user payload.

        Args:
            user_info: Dict with at least 'id' and usually 'email'
            access_token: Token the payload was fetched with

        Returns:
            User instance
        """
        return User(
            user_id=user_info['id'],
            email=user_info.get('email'),
            access_token=access_token
        )

    def to_dict(self) -> dict:
        """Public view of the user, safe to return to the browser"""
        return {'id': self.id, 'email': self.email}

    def __repr__(self):
        return f"<User {self.email}>"

# portal/api/auth/services.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from firebase_admin import firestore, auth as firebase_auth
from flask import Flask

from portal.utils.datetime_utils import DateTimeUtils


class AuthService:
    def __init__(self):
        self.db = None
        self.revoked_tokens_ref = None
        self.app: Optional[Flask] = None

    def init_app(self, app: Flask, db=None):
        """Called from create_app to bind the Firestore client and the app."""
        self.db = db or firestore.client()
        self.revoked_tokens_ref = self.db.collection('revoked_tokens')
        self.app = app

    def verify_id_token(self, id_token: str) -> Dict[str, Any]:
        """
        Verifies a Firebase Auth ID token issued to the browser.

        Raises:
            ValueError: the token is invalid, expired or revoked
        """
        try:
            return firebase_auth.verify_id_token(id_token)
        except (firebase_auth.InvalidIdTokenError, firebase_auth.ExpiredIdTokenError,
                firebase_auth.RevokedIdTokenError) as e:
            logging.warning(f"Rejected Firebase ID token: {e}")
            raise ValueError("Invalid or expired ID token.") from e

    # --- Blocklist ---
    def add_token_to_blocklist(self, jti: str, expires: datetime):
        try:
            token_data = {
                'revoked_at': DateTimeUtils.now(),
                'expires_at': expires
            }
            token_data = DateTimeUtils.for_firestore(token_data)
            self.revoked_tokens_ref.document(jti).set(token_data)
        except Exception as e:
            logging.error(f"Failed to add token to blocklist (jti: {jti}): {e}", exc_info=True)

    def is_token_revoked(self, jwt_payload: dict) -> bool:
        jti = jwt_payload['jti']
        doc = self.revoked_tokens_ref.document(jti).get()
        return doc.exists

    def logout_user(self, access_jti: str, access_exp: int, refresh_jti: str, refresh_exp: int):
        """Revokes both the access and the refresh token."""
        access_expires = datetime.fromtimestamp(access_exp, tz=timezone.utc)
        refresh_expires = datetime.fromtimestamp(refresh_exp, tz=timezone.utc)
        self.add_token_to_blocklist(access_jti, access_expires)
        self.add_token_to_blocklist(refresh_jti, refresh_expires)
        logging.info(f"User logged out. JTI: {access_jti[:8]}..., {refresh_jti[:8]}...")


auth_service = AuthService()

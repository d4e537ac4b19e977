import logging
from supabase import Client
from threads_app.database.supabase_client import authorize_client
from threads_app.modules.auth.schemas import (
    Identity, LoginRequest, RegisterRequest, RegisterResponse, TokenResponse
)
from threads_app.modules.profiles.provisioner import ProfileProvisioner
from threads_app.modules.profiles.service import ProfileService
from fastapi import HTTPException
from typing import Any, Optional

logger = logging.getLogger(__name__)

SUPPORTED_OAUTH_PROVIDERS = ("google",)


class AuthService:
    """Auth Service calls made on behalf of one browser (cookie-backed client)."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def register(self, register_data: RegisterRequest, email_redirect_to: str) -> RegisterResponse:
        """Register a new user using Supabase Auth"""
        profiles = ProfileService(self.supabase)
        username = register_data.username.lower()
        try:
            if not profiles.is_username_available(username):
                raise HTTPException(status_code=409, detail="Username already taken")

            user_metadata = {"username": username}
            if register_data.full_name:
                user_metadata["full_name"] = register_data.full_name

            auth_response = self.supabase.auth.sign_up({
                "email": register_data.email,
                "password": register_data.password,
                "options": {
                    "data": user_metadata,
                    "email_redirect_to": email_redirect_to,
                }
            })
        except HTTPException:
            raise
        except Exception as e:
            error_message = str(e)
            if "already registered" in error_message.lower() or "already exists" in error_message.lower():
                raise HTTPException(status_code=400, detail="User already exists")
            if "password should be" in error_message.lower():
                raise HTTPException(status_code=400, detail="Password must be at least 6 characters")
            raise HTTPException(status_code=500, detail=f"Registration failed: {error_message}")

        user = auth_response.user
        if not user:
            raise HTTPException(status_code=400, detail="Failed to register user")
        # Supabase answers a duplicate sign-up with an identity-less user
        if getattr(user, "identities", None) == []:
            raise HTTPException(status_code=400, detail="User already exists")

        confirmation_required = auth_response.session is None
        if not confirmation_required:
            authorize_client(self.supabase, auth_response.session.access_token)
            profile = ProfileProvisioner(profiles).ensure_profile(Identity.from_user(user))
            if profile is None:
                logger.warning("Registered user %s has no profile yet", user.id)

        return RegisterResponse(
            user_id=str(user.id),
            email=user.email or register_data.email,
            message="Check your email to confirm your account"
            if confirmation_required else "User registered successfully",
            confirmation_required=confirmation_required,
        )

    def login(self, login_data: LoginRequest) -> TokenResponse:
        """Authenticate user using Supabase Auth; the session lands in cookies"""
        try:
            auth_response = self.supabase.auth.sign_in_with_password({
                "email": login_data.email,
                "password": login_data.password
            })
        except Exception as e:
            error_message = str(e)
            if "invalid" in error_message.lower() or "credentials" in error_message.lower():
                raise HTTPException(status_code=401, detail="Invalid email or password")
            if "not confirmed" in error_message.lower():
                raise HTTPException(status_code=403, detail="Email not confirmed")
            raise HTTPException(status_code=500, detail=f"Login failed: {error_message}")

        if not auth_response.user or not auth_response.session:
            raise HTTPException(status_code=401, detail="Invalid credentials")

        return TokenResponse(
            access_token=auth_response.session.access_token,
            token_type="bearer",
            user_id=str(auth_response.user.id),
            email=auth_response.user.email or login_data.email
        )

    def oauth_authorize_url(self, provider: str, redirect_to: str) -> str:
        """Start the PKCE flow; the code verifier is written to the cookie storage"""
        if provider not in SUPPORTED_OAUTH_PROVIDERS:
            raise HTTPException(status_code=400, detail=f"Unsupported provider: {provider}")
        try:
            response = self.supabase.auth.sign_in_with_oauth({
                "provider": provider,
                "options": {
                    "redirect_to": redirect_to,
                    "query_params": {
                        "access_type": "offline",
                        "prompt": "consent",
                    },
                },
            })
        except Exception as e:
            logger.error(f"OAuth start failed for {provider}: {str(e)}")
            raise HTTPException(status_code=502, detail="Could not start sign-in with provider")
        return response.url

    def exchange_code(self, code: str) -> Any:
        """Trade an authorization code for a session. Provider errors propagate."""
        return self.supabase.auth.exchange_code_for_session({"auth_code": code})

    def get_identity(self, access_token: Optional[str] = None) -> Optional[Identity]:
        """Identity behind `access_token`, or behind the cookie session when omitted"""
        try:
            user_response = self.supabase.auth.get_user(access_token)
        except Exception as e:
            logger.info(f"Session rejected by Auth Service: {str(e)}")
            return None
        if not user_response or not user_response.user:
            return None
        return Identity.from_user(user_response.user)

    def get_session(self) -> Optional[Any]:
        try:
            return self.supabase.auth.get_session()
        except Exception as e:
            logger.info(f"No usable session: {str(e)}")
            return None

    def logout(self) -> bool:
        """Invalidate the session; the SDK clears the session cookies"""
        try:
            self.supabase.auth.sign_out()
            return True
        except Exception as e:
            logger.warning(f"Sign-out failed: {str(e)}")
            return False

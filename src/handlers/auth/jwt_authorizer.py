import logging
import os
import jwt

from booking_core.models.bookings import ActorRole

logger = logging.getLogger(__name__)

JWT_SECRET = os.environ.get("JWT_SECRET")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET environment variable is not set")


def actor_roles(claims: dict) -> list:
    """Booking roles granted by the token, consumer only when it names none.

    Accepts a ``roles`` list or a single ``role`` string; any value that is not
    an ActorRole rejects the token.
    """
    raw = claims.get("roles")
    if raw is None:
        raw = [claims["role"]] if claims.get("role") else [ActorRole.CONSUMER.value]
    if isinstance(raw, str):
        raw = [raw]

    roles = []
    for value in raw:
        role = ActorRole(str(value).lower())
        if role not in roles:
            roles.append(role)
    return roles


def _policy(principal_id, effect, method_arn, context=None):
    arn_prefix, stage = method_arn.split("/")[:2]
    response = {
        "principalId": principal_id,
        "policyDocument": {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Action": "execute-api:Invoke",
                    "Effect": effect,
                    "Resource": f"{arn_prefix}/{stage}/*/*",
                }
            ],
        },
    }
    # authorizer context values must be strings
    if context:
        response["context"] = {k: str(v) for k, v in context.items()}
    return response


def _bearer_token(event) -> str:
    headers = event.get("headers") or {}
    token = (
        event.get("authorizationToken")
        or headers.get("Authorization")
        or headers.get("authorization")
    )
    if not token:
        raise ValueError("Missing Authorization header")
    scheme, _, credentials = token.partition(" ")
    if credentials and scheme.lower() == "bearer":
        return credentials.strip()
    return token


def lambda_handler(event, context):
    method_arn = event["methodArn"]
    try:
        claims = jwt.decode(
            _bearer_token(event),
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            options={"require": ["exp"]},
        )

        user_id = claims.get("user_id") or claims.get("sub")
        if not user_id:
            raise ValueError("Token carries neither user_id nor sub")
        roles = actor_roles(claims)

        logger.info(
            f"Authorized {user_id} as {', '.join(r.value for r in roles)}"
        )
        return _policy(
            user_id,
            "Allow",
            method_arn,
            context={
                "user_id": user_id,
                "email": claims.get("email", ""),
                "roles": ",".join(r.value for r in roles),
            },
        )

    except jwt.ExpiredSignatureError:
        logger.info("Authorization failed: token expired")
    except jwt.InvalidTokenError as err:
        logger.info(f"Authorization failed: invalid token {err}")
    except (KeyError, TypeError, ValueError) as err:
        logger.info(f"Authorization failed: {err}")
    except Exception:
        logger.exception("Unexpected error while authorizing request")

    return _policy("unauthorized", "Deny", method_arn)

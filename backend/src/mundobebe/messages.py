"""User-facing copy shown in notifications.

Every message is already localized; the HTTP layer returns them verbatim.
"""

ERRORS = {
    "UNAUTHORIZED": "No estás autorizado para realizar esta acción",
    "UNAUTHENTICATED": "No se ha encontrado un token de sesión válido para realizar esta acción",
    "INVALID_CREDENTIALS": "Las credenciales proporcionadas son inválidas",
    "TOO_MANY_REQUESTS": "Demasiados intentos de acceso. Por favor, inténtalo de nuevo más tarde",
    "INVALID_JWT": "El token no es válido o ha caducado",
    "JWT_USER_NOT_FOUND": "No se encontró el usuario con el token proporcionado",
    "USER_NOT_FOUND": "Usuario no encontrado",
    "FORBIDDEN": "No tienes permisos para realizar esta acción",
    "EMAIL_ALREADY_EXISTS": "Ya existe un usuario con este correo electrónico",
    "USER_EXISTS": "Este usuario ya existe",
    "INVALID_PASSWORD": "La contraseña actual es incorrecta",
    "SAME_PASSWORD": "La nueva contraseña debe ser diferente a la actual",
    "PASSWORD_MISMATCH": "Las contraseñas no coinciden",
    "WEAK_PASSWORD": (
        "La contraseña debe tener al menos 8 caracteres, una mayúscula, "
        "una minúscula, un número y un carácter especial"
    ),
    "INVITATION_ALREADY_ACTIVE": "Este usuario ya tiene una invitación activa",
    "INVALID_CODE": "Código de invitación no válido o vencido",
    "SUPER_ADMIN_SELF_DELETE": "Un Super Admin no puede eliminar su propia cuenta",
    "EMAIL_MISMATCH": "El correo electrónico no coincide",
    "INSUFICIENT_PERMISSIONS_FOR_ROLE_CHANGE": "No tienes permisos para cambiar el rol",
    "INVALID_INPUT": "Los datos proporcionados son inválidos",
    "VALIDATION": "Ha ocurrido un error de validación",
    "NOT_NULLABLE": "Este campo no puede quedar vacío",
    "NOT_FOUND": "El recurso solicitado no existe",
    "CONFLICT": "Ya existe un registro con estos datos",
    "INTERNAL_SERVER_ERROR": "Ha ocurrido un error inesperado. Por favor, inténtalo de nuevo",
}

SUCCESS_MESSAGES = {
    "LOGGED_IN": "Sesión iniciada correctamente",
    "REGISTERED_USER": "Usuario registrado correctamente",
    "PASSWORD_RESET_SENT": (
        "Si el correo está registrado, recibirás un enlace para restablecer tu contraseña"
    ),
    "PASSWORD_RESET": "Tu contraseña ha sido restablecida correctamente",
    "PASSWORD_CHANGED": "Contraseña actualizada correctamente",
    "PROFILE_UPDATED": "Perfil actualizado correctamente",
    "ACCOUNT_DELETED": "Tu cuenta ha sido eliminada",
    "INVITATION_SENT": "Invitación enviada correctamente",
    "USER_CREATED": "Usuario creado correctamente",
    "USER_UPDATED": "Usuario actualizado correctamente",
    "USER_DELETED": "Usuario(s) eliminado(s) correctamente",
}


def wait_minutes_message(minutes: int) -> str:
    """Actionable copy for quota and cooldown errors."""
    unit = "minuto" if minutes == 1 else "minutos"
    return f"Demasiados intentos. Debes esperar {minutes} {unit} antes de volver a intentarlo."

from app.schemas.forms import ChangePasswordForm, TransferForm, format_errors

__all__ = ["ChangePasswordForm", "TransferForm", "format_errors"]

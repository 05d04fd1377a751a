"""Shared form base classes.

Forms inherit from StyledForm (plain forms) or StyledModelForm (model forms)
so widgets pick up Bootstrap classes without per-template markup.
"""

from django import forms
from django.conf import settings


class _StyledFormMixin:
    def _apply_css_classes(self) -> None:
        for field in self.fields.values():
            if isinstance(field.widget, forms.CheckboxInput):
                field.widget.attrs.setdefault("class", "form-check-input")
            elif isinstance(field.widget, forms.RadioSelect):
                field.widget.attrs.setdefault("class", "form-check-input")
            elif isinstance(field.widget, forms.Textarea):
                field.widget.attrs.setdefault("class", "form-control")
                field.widget.attrs.setdefault("spellcheck", "true")
            elif isinstance(field.widget, forms.Select):
                field.widget.attrs.setdefault("class", "form-select")
            else:
                field.widget.attrs.setdefault("class", "form-control")

    def _apply_invalid_classes(self) -> None:
        """Mark invalid widgets with is-invalid for Bootstrap highlighting."""
        for name in self.errors.keys():
            if name not in self.fields:
                continue
            widget = self.fields[name].widget
            css = widget.attrs.get("class", "")
            if "is-invalid" not in css:
                widget.attrs["class"] = (css + " is-invalid").strip()


class StyledForm(_StyledFormMixin, forms.Form):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._apply_css_classes()

    def full_clean(self):
        super().full_clean()
        self._apply_invalid_classes()


class StyledModelForm(_StyledFormMixin, forms.ModelForm):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._apply_css_classes()

    def full_clean(self):
        super().full_clean()
        self._apply_invalid_classes()


class AdminPasswordForm(StyledForm):
    """Confirmation step for irreversible administrator actions.

    Only the shape of the password is checked here; the services verify it
    against the signed-in account.
    """

    password = forms.CharField(
        label="Your admin password",
        strip=False,
        widget=forms.PasswordInput(attrs={"autocomplete": "current-password"}),
    )

    def clean_password(self) -> str:
        password = self.cleaned_data["password"]
        min_length = settings.AGORA_MIN_ADMIN_PASSWORD_LENGTH
        if len(password) < min_length:
            raise forms.ValidationError(f"Password must be at least {min_length} characters.")
        return password

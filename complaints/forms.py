from django import forms

from hosted.records import Status


class MultipleFileInput(forms.ClearableFileInput):
    allow_multiple_selected = True


class MultipleFileField(forms.FileField):
    """File field that accepts zero or more files and cleans to a list."""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("widget", MultipleFileInput())
        kwargs.setdefault("required", False)
        super().__init__(*args, **kwargs)

    def clean(self, data, initial=None):
        single_file_clean = super().clean
        if isinstance(data, (list, tuple)):
            return [single_file_clean(d, initial) for d in data if d]
        if not data:
            return []
        return [single_file_clean(data, initial)]


class ComplaintForm(forms.Form):
    reason = forms.CharField(
        label="Reason for Complaint",
        max_length=200,
        widget=forms.TextInput(attrs={"placeholder": "Brief description of your issue"}),
    )
    details = forms.CharField(
        label="Please Provide Further Details",
        widget=forms.Textarea(
            attrs={"rows": 6, "placeholder": "Explain your complaint in detail..."}
        ),
    )
    images = MultipleFileField(
        label="Images (Optional)",
        widget=MultipleFileInput(attrs={"accept": "image/*"}),
    )
    videos = MultipleFileField(
        label="Videos (Optional)",
        widget=MultipleFileInput(attrs={"accept": "video/*"}),
    )

    def _clean_media(self, field, kind):
        files = self.cleaned_data.get(field) or []
        for f in files:
            content_type = getattr(f, "content_type", "") or ""
            if not content_type.startswith(f"{kind}/"):
                raise forms.ValidationError(f"{f.name} is not {'an' if kind == 'image' else 'a'} {kind} file.")
        return files

    def clean_images(self):
        return self._clean_media("images", "image")

    def clean_videos(self):
        return self._clean_media("videos", "video")


class TrackForm(forms.Form):
    ticket = forms.CharField(
        label="Ticket Number",
        max_length=32,
        widget=forms.TextInput(attrs={"placeholder": "BT-XXXXXX"}),
    )

    def clean_ticket(self):
        ticket = self.cleaned_data["ticket"].strip().upper()
        if not ticket:
            raise forms.ValidationError("Enter a ticket number.")
        return ticket


class StatusForm(forms.Form):
    complaint_id = forms.CharField(max_length=64)
    status = forms.ChoiceField(choices=Status.choices())

    def clean_status(self):
        return Status(self.cleaned_data["status"])

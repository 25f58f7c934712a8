from flask import current_app
from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField, FileRequired


class FileUploadForm(FlaskForm):
    class Meta:
        csrf = False

    file = FileField("File", validators=[FileRequired(message="Choose a file to upload.")])

    def validate_file(self, field):
        allowed = current_app.config["ALLOWED_UPLOAD_EXTENSIONS"]
        FileAllowed(allowed, message=f"Allowed file types: {', '.join(allowed)}.")(self, field)

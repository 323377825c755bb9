# forms.py
import json

from flask_wtf import FlaskForm
from wtforms import Field, StringField, PasswordField, TextAreaField, IntegerField, BooleanField, SelectField
from wtforms.validators import DataRequired, EqualTo, Email, Length, Optional, NumberRange, AnyOf, ValidationError

from config import PRIORIDADES
from routes.workflows import NOMBRES_ESTADOS

# Los valores falsos de JSON llegan como bool, no como texto
FALSE_VALUES = (False, 'false', 'False', '0', 'off', 'no', '')


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class ListaJSONField(Field):
    """
    Lista de objetos. Acepta el texto JSON que envía el asistente en un
    formulario multipart, o el arreglo tal cual dentro de un cuerpo JSON
    (Flask-WTF lo entrega como varios valores bajo la misma clave).
    """

    def process_formdata(self, valuelist):
        if not valuelist:
            self.data = []
            return
        if len(valuelist) == 1 and isinstance(valuelist[0], str):
            if not valuelist[0].strip():
                self.data = []
                return
            try:
                valor = json.loads(valuelist[0])
            except ValueError:
                self.data = []
                raise ValueError('La lista de involucrados no es JSON válido.')
            if not isinstance(valor, list):
                self.data = []
                raise ValueError('Los involucrados deben enviarse como una lista.')
            self.data = valor
        else:
            self.data = list(valuelist)

    def _value(self):
        return json.dumps(self.data) if self.data else ''


class ApiForm(FlaskForm):
    """
    Base de los formularios de la API JSON. Flask-WTF toma los datos de
    request.form/request.files o del cuerpo JSON según la petición.
    """
    class Meta:
        csrf = False


# --- Autenticación y usuarios ---

class LoginForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(), Email()], filters=[_strip])
    password = PasswordField('Contraseña', validators=[DataRequired()])


class SetupForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(), Email()], filters=[_strip])
    nombre = StringField('Nombre', validators=[DataRequired(), Length(max=100)], filters=[_strip])
    apellido = StringField('Apellido', validators=[Optional(), Length(max=100)], filters=[_strip])
    password = PasswordField('Contraseña', validators=[DataRequired(), Length(min=8)])


class UserForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(), Email()], filters=[_strip])
    nombre = StringField('Nombre', validators=[DataRequired(), Length(max=100)], filters=[_strip])
    apellido = StringField('Apellido', validators=[Optional(), Length(max=100)], filters=[_strip])
    telefono = StringField('Teléfono', validators=[Optional(), Length(min=6, max=30)], filters=[_strip])
    # Requerida solo al crear; en edición vacía significa "sin cambios"
    password = PasswordField('Contraseña', validators=[Optional(), Length(min=8)])
    confirm_password = PasswordField('Confirmar Contraseña', validators=[EqualTo('password', message='Las contraseñas no coinciden.')])
    activo = BooleanField('Activo', default=True, false_values=FALSE_VALUES)


class RoleForm(ApiForm):
    name = StringField('Nombre', validators=[DataRequired(), Length(max=80)], filters=[_strip])
    description = StringField('Descripción', validators=[Optional(), Length(max=255)], filters=[_strip])


class ResetPasswordForm(ApiForm):
    password = PasswordField('Contraseña', validators=[DataRequired(), Length(min=8)])
    confirm_password = PasswordField('Confirmar Contraseña', validators=[DataRequired(), EqualTo('password', message='Las contraseñas no coinciden.')])


# --- Portal público ---

class DenunciaPublicaForm(ApiForm):
    recaptcha_token = StringField('reCAPTCHA', validators=[Optional()])
    id_empresa = IntegerField('Empresa', validators=[DataRequired(message='Debe seleccionar la empresa.')])
    id_tipo = IntegerField('Tipo de denuncia', validators=[DataRequired(message='Debe seleccionar el tipo de denuncia.')])
    asunto = StringField('Asunto', validators=[Optional(), Length(max=255)], filters=[_strip])
    descripcion = TextAreaField('Descripción', validators=[DataRequired(), Length(min=10, max=10000)], filters=[_strip])
    relacion = StringField('Relación con la empresa', validators=[Optional(), Length(max=100)], filters=[_strip])
    periodo = StringField('Periodo de los hechos', validators=[Optional(), Length(max=100)], filters=[_strip])
    pais = StringField('País', validators=[Optional(), Length(max=100)], filters=[_strip])
    ciudad = StringField('Ciudad', validators=[Optional(), Length(max=100)], filters=[_strip])
    involucrados = ListaJSONField('Involucrados', default=list)
    anonimo = BooleanField('Anónima', false_values=FALSE_VALUES)
    nombre = StringField('Nombre completo', validators=[Optional(), Length(min=2, max=100)], filters=[_strip])
    rut = StringField('RUT', validators=[Optional(), Length(max=20)], filters=[_strip])
    email = StringField('Email', validators=[Optional(), Email()], filters=[_strip])
    telefono = StringField('Teléfono', validators=[Optional(), Length(min=6, max=30)], filters=[_strip])

    def validate(self, extra_validators=None):
        # Optional() corta la cadena de validadores del campo, por eso los
        # datos de contacto obligatorios se revisan a nivel de formulario
        valido = super().validate(extra_validators=extra_validators)
        # Si el asistente no envía el campo, la denuncia se trata como anónima
        if not self.anonimo.raw_data:
            self.anonimo.data = True
        if self.anonimo.data:
            return valido
        if not self.nombre.data:
            self.nombre.errors = list(self.nombre.errors) + ['El nombre es obligatorio en una denuncia identificada.']
            valido = False
        if not self.email.data and not self.telefono.data:
            self.email.errors = list(self.email.errors) + ['Indique un email o teléfono de contacto.']
            valido = False
        return valido

    def validate_involucrados(self, field):
        # Los errores de lectura del JSON ya quedaron en field.errors
        if field.process_errors or not field.data:
            return
        if not all(isinstance(persona, dict) for persona in field.data):
            raise ValidationError('Cada involucrado debe ser un objeto con sus datos.')


class SeguimientoForm(ApiForm):
    numero = StringField('Número de denuncia', validators=[DataRequired(), Length(max=20)], filters=[_strip])
    clave = StringField('Clave de acceso', validators=[DataRequired(), Length(max=64)], filters=[_strip])


class RespuestaDenuncianteForm(SeguimientoForm):
    contenido = TextAreaField('Mensaje', validators=[DataRequired(), Length(min=2, max=5000)], filters=[_strip])


class SatisfaccionForm(SeguimientoForm):
    nota = IntegerField('Nota', validators=[DataRequired(), NumberRange(min=1, max=5)])
    comentario = TextAreaField('Comentario', validators=[Optional(), Length(max=2000)], filters=[_strip])


# --- Gestión de denuncias ---

class CambioEstadoForm(ApiForm):
    estado = StringField('Estado', validators=[DataRequired(), AnyOf(NOMBRES_ESTADOS, message='Estado desconocido.')], filters=[_strip])
    motivo = TextAreaField('Motivo', validators=[Optional(), Length(max=2000)], filters=[_strip])
    resolucion = TextAreaField('Resolución', validators=[Optional(), Length(max=10000)], filters=[_strip])


class AsignacionForm(ApiForm):
    id_supervisor = IntegerField('Supervisor', validators=[DataRequired()])


class PrioridadForm(ApiForm):
    prioridad = SelectField('Prioridad', choices=[(p, p) for p in PRIORIDADES], validators=[DataRequired()])


class ComentarioForm(ApiForm):
    contenido = TextAreaField('Comentario', validators=[DataRequired(), Length(min=1, max=5000)], filters=[_strip])
    es_interno = BooleanField('Interno', false_values=FALSE_VALUES)


class RevelarEmailForm(ApiForm):
    # Con la clave que entregó el denunciante no se exige motivo
    clave = StringField('Clave de acceso', validators=[Optional(), Length(max=64)], filters=[_strip])
    motivo = TextAreaField('Motivo', validators=[Optional(), Length(max=2000)], filters=[_strip])


# --- Catálogos ---

class EmpresaForm(ApiForm):
    nombre = StringField('Nombre', validators=[DataRequired(), Length(max=255)], filters=[_strip])
    rut = StringField('RUT', validators=[DataRequired(), Length(max=20)], filters=[_strip])
    direccion = StringField('Dirección', validators=[Optional(), Length(max=255)], filters=[_strip])
    telefono = StringField('Teléfono', validators=[Optional(), Length(min=6, max=30)], filters=[_strip])
    email = StringField('Email', validators=[Optional(), Email()], filters=[_strip])
    activo = BooleanField('Activa', default=True, false_values=FALSE_VALUES)


class TipoDenunciaForm(ApiForm):
    codigo = StringField('Código', validators=[DataRequired(), Length(max=20)], filters=[_strip])
    nombre = StringField('Nombre', validators=[DataRequired(), Length(max=100)], filters=[_strip])
    descripcion = TextAreaField('Descripción', validators=[Optional()], filters=[_strip])
    activo = BooleanField('Activo', default=True, false_values=FALSE_VALUES)

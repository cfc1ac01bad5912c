from django.db import models


class Patient(models.Model):
    """Hoja de filiación — 患者基本资料。"""

    patient_id = models.CharField(max_length=10, primary_key=True)
    history_number = models.CharField(max_length=20, blank=True, default='')
    paternal_surname = models.CharField(max_length=50, blank=True, default='')
    maternal_surname = models.CharField(max_length=50, blank=True, default='')
    names = models.CharField(max_length=100, blank=True, default='')
    document = models.CharField(max_length=15, blank=True, default='')
    sex = models.CharField(max_length=1, blank=True, default='')
    birth_date = models.DateField(blank=True, null=True)

    class Meta:
        db_table = 'patients'

    @property
    def full_name(self):
        return f"{self.paternal_surname} {self.maternal_surname} {self.names}".strip()


class Ward(models.Model):
    """Consultorio / servicio de hospitalización。kind='H' 为住院科室。"""

    code = models.CharField(max_length=6, primary_key=True)
    name = models.CharField(max_length=100)
    kind = models.CharField(max_length=1, default='H')

    class Meta:
        db_table = 'wards'


class Doctor(models.Model):
    code = models.CharField(max_length=3, primary_key=True)
    name = models.CharField(max_length=100)
    ward = models.ForeignKey(Ward, on_delete=models.SET_NULL, blank=True, null=True)

    class Meta:
        db_table = 'doctors'


class Insurance(models.Model):
    code = models.CharField(max_length=2, primary_key=True)
    name = models.CharField(max_length=100)

    class Meta:
        db_table = 'insurances'


class Diagnosis(models.Model):
    """CIE-10 diagnosis catalog."""

    code = models.CharField(max_length=10, primary_key=True)
    description = models.CharField(max_length=200)

    class Meta:
        db_table = 'diagnoses'


class OriginRecord(models.Model):
    """
    住院来源：一次急诊 (EM) 或门诊 (CE) 就诊记录。

    diagnosis_text 是反规范化的诊断文本，格式 "CODE DESCRIPTION"，
    可能是逗号拼接的多条。
    """

    ORIGIN_CHOICES = [
        ('EM', 'Emergencia'),
        ('CE', 'Consulta Externa'),
    ]

    code = models.CharField(max_length=10, primary_key=True)
    origin_type = models.CharField(max_length=2, choices=ORIGIN_CHOICES)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='origin_records')
    ward = models.ForeignKey(Ward, on_delete=models.SET_NULL, blank=True, null=True)
    doctor = models.ForeignKey(Doctor, on_delete=models.SET_NULL, blank=True, null=True)
    diagnosis_text = models.CharField(max_length=500, blank=True, default='')
    insurance_code = models.CharField(max_length=2, blank=True, default='')
    attended_at = models.DateTimeField()

    class Meta:
        db_table = 'origin_records'


class FuaAuthorization(models.Model):
    """FUA — SIS 保险预授权。status='2' 为有效。"""

    account_id = models.CharField(max_length=20, primary_key=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='fuas')
    attended_at = models.DateTimeField()
    status = models.CharField(max_length=1, default='2')

    class Meta:
        db_table = 'fua_authorizations'


class PatientAccount(models.Model):
    """Cuenta de liquidación. status='1' 为开放。"""

    account_id = models.CharField(max_length=20, primary_key=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='accounts')
    insurance_code = models.CharField(max_length=2, blank=True, default='')
    status = models.CharField(max_length=1, default='1')
    opened_at = models.DateTimeField(auto_now_add=True)
    opened_by = models.CharField(max_length=20, blank=True, default='')

    class Meta:
        db_table = 'patient_accounts'


class HospitalizationOrder(models.Model):
    """
    Orden de hospitalización。

    列宽与提交时的截断策略一致：字段在写入前已经被截断，
    这里的 max_length 只是最后一道保险。
    """

    STATUS_CHOICES = [
        ('0', 'Anulada'),
        ('1', 'Pendiente'),
        ('2', 'Abierta'),
        ('3', 'Finalizada'),
    ]
    ORIGIN_CHOICES = [
        ('EM', 'Emergencia'),
        ('CE', 'Consulta Externa'),
        ('RN', 'Recién Nacido'),
    ]

    order_id = models.CharField(max_length=10, primary_key=True)
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='orders')
    patient_name = models.CharField(max_length=100)
    ward_code = models.CharField(max_length=6)
    time = models.CharField(max_length=10)
    date = models.DateField()
    origin_type = models.CharField(max_length=2, choices=ORIGIN_CHOICES)
    origin_record_code = models.CharField(max_length=10, blank=True, default='')
    insurance_code = models.CharField(max_length=2)
    doctor_code = models.CharField(max_length=3)
    status = models.CharField(max_length=1, choices=STATUS_CHOICES, default='2')
    user = models.CharField(max_length=20)
    print_user = models.CharField(max_length=20, blank=True, default='')
    diagnosis_code = models.CharField(max_length=10)
    age = models.CharField(max_length=10)
    companion_name = models.CharField(max_length=50, blank=True, default='')
    companion_phone = models.CharField(max_length=15, blank=True, default='')
    companion_address = models.CharField(max_length=100, blank=True, default='')
    account_id = models.CharField(max_length=20, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'hospitalization_orders'

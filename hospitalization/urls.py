from django.urls import path
from .views import (
    CatalogSearchView, DiagnosisVerifyView, EditableOrderView, FuaCheckView, NextOrderIdView,
    OrderCreateView, OrderDetailView, OrderDocumentsView, OrderFormView, OrderSubmitView,
    PatientDetailView, PatientOrderListView, SecureAccountView,
)

urlpatterns = [
    path('catalog/<str:kind>/', CatalogSearchView.as_view(), name='catalog-search'),
    path('fua/check/', FuaCheckView.as_view(), name='fua-check'),
    path('diagnosis-verify/', DiagnosisVerifyView.as_view(), name='diagnosis-verify'),
    path('patient/<str:patient_id>/', PatientDetailView.as_view(), name='patient-detail'),
    path('order/', OrderCreateView.as_view(), name='order-create'),
    path('order/next-id/', NextOrderIdView.as_view(), name='order-next-id'),
    path('order/submit/', OrderSubmitView.as_view(), name='order-submit'),
    path('order/editable/', EditableOrderView.as_view(), name='order-editable'),
    path('order/patient/<str:patient_id>/', PatientOrderListView.as_view(), name='order-patient-list'),
    path('order/<str:order_id>/', OrderDetailView.as_view(), name='order-detail'),
    path('order/<str:order_id>/form/', OrderFormView.as_view(), name='order-form'),
    path('order/<str:order_id>/secure-account/', SecureAccountView.as_view(), name='order-secure-account'),
    path('order/<str:order_id>/documents/', OrderDocumentsView.as_view(), name='order-documents'),
]

from django.contrib import admin
from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from accounts.api import LoginView, MeView, RegisterView
from payments.api import CheckoutSessionView, PaymentSuccessView

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/auth/register/", RegisterView.as_view(), name="auth-register"),
    path("api/auth/login/", LoginView.as_view(), name="auth-login"),
    path("api/auth/refresh/", TokenRefreshView.as_view(), name="auth-refresh"),
    path("api/auth/me/", MeView.as_view(), name="auth-me"),
    path(
        "api/create-checkout-session/",
        CheckoutSessionView.as_view(),
        name="create-checkout-session",
    ),
    path("api/payment-success/", PaymentSuccessView.as_view(), name="payment-success"),
]

from django.conf import settings


def branding(request):
    """Inject platform branding defaults into all templates."""
    return {"brand": {"title": getattr(settings, "BRAND_TITLE", "Canvass")}}

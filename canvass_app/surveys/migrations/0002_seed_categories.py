from django.db import migrations


CATEGORIES = [
    ("education", "Education"),
    ("entertainment", "Entertainment"),
    ("health", "Health"),
    ("miscellaneous", "Miscellaneous"),
    ("politics", "Politics"),
    ("technology", "Technology"),
]


def seed(apps, schema_editor):
    Category = apps.get_model("surveys", "Category")
    for slug, name in CATEGORIES:
        Category.objects.get_or_create(slug=slug, defaults={"name": name})


def unseed(apps, schema_editor):
    Category = apps.get_model("surveys", "Category")
    Category.objects.filter(slug__in=[slug for slug, _ in CATEGORIES], surveys__isnull=True).delete()


class Migration(migrations.Migration):

    dependencies = [
        ("surveys", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed, unseed),
    ]

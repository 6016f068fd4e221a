from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("surveys", "0002_seed_categories"),
    ]

    operations = [
        migrations.AddConstraint(
            model_name="surveyquestion",
            constraint=models.UniqueConstraint(
                fields=("survey", "index"), name="unique_question_index_per_survey"
            ),
        ),
    ]

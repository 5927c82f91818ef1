from django.core.management.base import BaseCommand
from django.utils.text import slugify

from apps.shop.models import Category


class Command(BaseCommand):
    help = 'Create the default artisan category tree for Artisashop'

    def handle(self, *args, **kwargs):
        categories_data = {
            'Ceramics & Pottery': [
                'Vases', 'Bowls & Plates', 'Mugs & Cups', 'Sculptures'
            ],
            'Jewelry': [
                'Necklaces', 'Earrings', 'Rings', 'Bracelets'
            ],
            'Textiles & Weaving': [
                'Scarves', 'Rugs', 'Cushions', 'Embroidery'
            ],
            'Woodwork': [
                'Furniture', 'Kitchen utensils', 'Toys', 'Carvings'
            ],
            'Leather Goods': [
                'Bags', 'Wallets', 'Belts'
            ],
            'Glass': [
                'Blown glass', 'Stained glass'
            ],
            'Paper & Stationery': [
                'Notebooks', 'Cards', 'Prints'
            ],
            'Home Decor': [
                'Candles', 'Lighting', 'Wall art'
            ],
            'Cosmetics & Soaps': [
                'Soaps', 'Skincare', 'Fragrances'
            ],
        }

        for main_name, children in categories_data.items():
            main_cat, created = Category.objects.get_or_create(
                slug=slugify(main_name),
                defaults={'name': main_name}
            )

            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created category: {main_name}'))
            else:
                self.stdout.write(self.style.WARNING(f'- Category already exists: {main_name}'))

            for child_name in children:
                # Child slugs are prefixed so "Bags" etc. stay unique across parents
                _child, child_created = Category.objects.get_or_create(
                    slug=f'{main_cat.slug}-{slugify(child_name)}',
                    defaults={'name': child_name, 'parent': main_cat}
                )
                if child_created:
                    self.stdout.write(f'  ✓ Created subcategory: {child_name}')

        self.stdout.write(self.style.SUCCESS('\n✅ Categories created successfully!'))

"""
Shop App Forms
Validation for catalog, review and checkout payloads
"""

from decimal import Decimal

from django import forms
from django.core.exceptions import ValidationError
from django.utils.text import slugify

from .models import Category, Product


class ProductForm(forms.Form):
    """
    Product create/update payload.
    With partial=True every field is optional and only submitted
    fields are applied.
    """
    name = forms.CharField(max_length=200)
    description = forms.CharField(required=False)
    price = forms.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=Decimal('0.00'),
        error_messages={'min_value': 'Price must be a positive number'}
    )
    stock = forms.IntegerField(
        min_value=0,
        error_messages={'min_value': 'Stock must be a positive integer'}
    )
    is_active = forms.NullBooleanField(required=False)
    is_featured = forms.NullBooleanField(required=False)

    def __init__(self, *args, partial=False, **kwargs):
        self.partial = partial
        super().__init__(*args, **kwargs)
        if partial:
            for field in self.fields.values():
                field.required = False
        else:
            self.fields['stock'].required = False

    def clean_name(self):
        name = (self.cleaned_data.get('name') or '').strip()
        if not self.partial and not name:
            raise ValidationError('Product name is required')
        if self.partial and 'name' in self.data and not name:
            raise ValidationError('Product name cannot be empty')
        return name

    def clean_stock(self):
        stock = self.cleaned_data.get('stock')
        if stock is None and not self.partial:
            return 0
        return stock

    def submitted_fields(self):
        return [name for name in self.fields if name in self.data]

    def apply_to(self, product: Product):
        """Copy submitted values onto a product; returns the changed field names."""
        changed = []
        for name in self.submitted_fields():
            value = self.cleaned_data.get(name)
            if name in ('price', 'stock') and value is None:
                continue
            if name in ('is_active', 'is_featured') and value is None:
                continue
            setattr(product, name, value)
            changed.append(name)
        return changed


class CategoryForm(forms.ModelForm):
    parent_id = forms.IntegerField(required=False)

    class Meta:
        model = Category
        fields = ['name', 'slug', 'description']

    def __init__(self, *args, partial=False, **kwargs):
        self.partial = partial
        super().__init__(*args, **kwargs)
        if partial:
            for field in self.fields.values():
                field.required = False

    def clean_slug(self):
        slug = (self.cleaned_data.get('slug') or '').strip()
        if self.partial and not slug:
            return self.instance.slug
        if slug != slugify(slug):
            raise ValidationError('Slug may only contain lowercase letters, numbers and hyphens')
        return slug

    def clean_name(self):
        name = (self.cleaned_data.get('name') or '').strip()
        if self.partial and not name:
            return self.instance.name
        return name

    def clean_description(self):
        description = self.cleaned_data.get('description')
        if self.partial and 'description' not in self.data:
            return self.instance.description
        return description or ''

    def clean_parent_id(self):
        parent_id = self.cleaned_data.get('parent_id')
        if self.partial and 'parent_id' not in self.data:
            return self.instance.parent_id
        if parent_id is None:
            return None
        if self.instance.pk and parent_id == self.instance.pk:
            raise ValidationError('A category cannot be its own parent')
        if not Category.objects.filter(pk=parent_id).exists():
            raise ValidationError('Parent category not found')
        return parent_id

    def save(self, commit=True):
        category = super().save(commit=False)
        category.parent_id = self.cleaned_data.get('parent_id')
        if commit:
            category.save()
        return category


class ReviewForm(forms.Form):
    product_id = forms.IntegerField()
    rating = forms.IntegerField(
        min_value=1,
        max_value=5,
        error_messages={
            'min_value': 'Rating must be between 1 and 5',
            'max_value': 'Rating must be between 1 and 5',
        }
    )
    comment = forms.CharField(required=False)

"""initial schema: catalog, product images, upload batches, audit log, settings

Revision ID: 5c1e7a9d2b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c1e7a9d2b40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('part_number', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('brand', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_products_part_number', 'products', ['part_number'], unique=True)

    op.create_table(
        'product_images',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('uid', sa.String(length=32), nullable=False),
        sa.Column('part_number', sa.String(length=64), nullable=False),
        sa.Column('file_name', sa.String(length=512), nullable=False),
        sa.Column('file_url', sa.String(length=1024), nullable=True),
        sa.Column('thumbnail_url', sa.String(length=1024), nullable=True),
        sa.Column('image_data', sa.LargeBinary(), nullable=True),
        sa.Column('thumbnail_data', sa.LargeBinary(), nullable=True),
        sa.Column('original_size', sa.Integer(), nullable=False),
        sa.Column('compressed_size', sa.Integer(), nullable=False),
        sa.Column('width', sa.Integer(), nullable=True),
        sa.Column('height', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('uploaded_by', sa.String(length=100), nullable=False),
        sa.Column('uploader_type', sa.String(length=30), nullable=False),
        sa.Column('uploader_name', sa.String(length=255), nullable=False),
        sa.Column('is_auto_matched', sa.Boolean(), nullable=False),
        sa.Column('is_linked_to_product', sa.Boolean(), nullable=False),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by', sa.String(length=100), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_product_images_uid', 'product_images', ['uid'], unique=True)
    op.create_index('ix_product_images_part_number', 'product_images', ['part_number'])
    op.create_index('ix_product_images_status', 'product_images', ['status'])
    op.create_index('ix_product_images_uploader_type', 'product_images', ['uploader_type'])

    op.create_table(
        'upload_batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('uid', sa.String(length=32), nullable=False),
        sa.Column('file_name', sa.String(length=512), nullable=False),
        sa.Column('archive_data', sa.LargeBinary(), nullable=True),
        sa.Column('actor_id', sa.String(length=100), nullable=False),
        sa.Column('actor_name', sa.String(length=255), nullable=False),
        sa.Column('actor_type', sa.String(length=30), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('processed', sa.Integer(), nullable=False),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('matched', sa.Integer(), nullable=False),
        sa.Column('unmatched', sa.Integer(), nullable=False),
        sa.Column('updated', sa.Integer(), nullable=False),
        sa.Column('failed', sa.Integer(), nullable=False),
        sa.Column('cancel_requested', sa.Boolean(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_upload_batches_uid', 'upload_batches', ['uid'], unique=True)
    op.create_index('ix_upload_batches_status', 'upload_batches', ['status'])

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.String(length=100), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('image_uid', sa.String(length=32), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_log_actor_id', 'audit_log', ['actor_id'])
    op.create_index('ix_audit_log_image_uid', 'audit_log', ['image_uid'])
    op.create_index('ix_audit_log_created_at', 'audit_log', ['created_at'])

    op.create_table(
        'settings',
        sa.Column('key', sa.String(length=100), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade():
    op.drop_table('settings')
    op.drop_index('ix_audit_log_created_at', table_name='audit_log')
    op.drop_index('ix_audit_log_image_uid', table_name='audit_log')
    op.drop_index('ix_audit_log_actor_id', table_name='audit_log')
    op.drop_table('audit_log')
    op.drop_index('ix_upload_batches_status', table_name='upload_batches')
    op.drop_index('ix_upload_batches_uid', table_name='upload_batches')
    op.drop_table('upload_batches')
    op.drop_index('ix_product_images_uploader_type', table_name='product_images')
    op.drop_index('ix_product_images_status', table_name='product_images')
    op.drop_index('ix_product_images_part_number', table_name='product_images')
    op.drop_index('ix_product_images_uid', table_name='product_images')
    op.drop_table('product_images')
    op.drop_index('ix_products_part_number', table_name='products')
    op.drop_table('products')

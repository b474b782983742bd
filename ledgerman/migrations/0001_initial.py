"""
Initial migration for Ledgerman models.
"""

from decimal import Decimal
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import ledgerman.models.movement


class Migration(migrations.Migration):
    """Create Ledgerman models: Batch, Movement, StockValuation, StockAlert."""

    initial = True

    dependencies = [
        ('contenttypes', '0002_remove_content_type_name'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Batch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('batch_number', models.CharField(max_length=50, verbose_name='Número do Lote')),
                ('object_id', models.PositiveIntegerField(verbose_name='ID do Produto')),
                ('initial_quantity', models.DecimalField(decimal_places=4, max_digits=15, verbose_name='Quantidade Inicial')),
                ('remaining_quantity', models.DecimalField(decimal_places=4, max_digits=15, verbose_name='Quantidade Restante')),
                ('unit_cost', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=15, verbose_name='Custo Unitário')),
                ('total_cost', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=19, verbose_name='Custo Total')),
                ('received_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Recebido em')),
                ('manufactured_at', models.DateField(blank=True, null=True, verbose_name='Data de Fabricação')),
                ('expires_at', models.DateField(blank=True, db_index=True, help_text='Último dia em que o lote pode ser usado', null=True, verbose_name='Data de Validade')),
                ('status', models.CharField(choices=[('active', 'Ativo'), ('consumed', 'Consumido'), ('expired', 'Vencido'), ('damaged', 'Avariado'), ('returned', 'Devolvido')], db_index=True, default='active', max_length=20, verbose_name='Status')),
                ('quality_status', models.CharField(choices=[('pending', 'Pendente'), ('approved', 'Aprovado'), ('rejected', 'Rejeitado'), ('on_hold', 'Em espera')], default='pending', max_length=20, verbose_name='Status de Qualidade')),
                ('location', models.CharField(default='main', max_length=100, verbose_name='Local')),
                ('supplier', models.CharField(blank=True, default='', max_length=200, verbose_name='Fornecedor')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Observações')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Criado em')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Atualizado em')),
                ('content_type', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='contenttypes.contenttype', verbose_name='Tipo de Produto')),
            ],
            options={
                'verbose_name': 'Lote',
                'verbose_name_plural': 'Lotes',
                'ordering': ['received_at', 'id'],
                'indexes': [models.Index(fields=['content_type', 'object_id', 'status'], name='ledgerman_bt_product_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('content_type', 'object_id', 'batch_number'), name='unique_batch_number_per_product'),
                    models.CheckConstraint(condition=models.Q(('remaining_quantity__gte', 0)), name='batch_remaining_gte_zero'),
                    models.CheckConstraint(condition=models.Q(('remaining_quantity__lte', models.F('initial_quantity'))), name='batch_remaining_lte_initial'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Movement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('number', models.CharField(default=ledgerman.models.movement._movement_number, editable=False, max_length=50, unique=True, verbose_name='Número')),
                ('object_id', models.PositiveIntegerField(verbose_name='ID do Produto')),
                ('kind', models.CharField(choices=[('purchase_receipt', 'Recebimento de compra'), ('sales_issue', 'Saída por venda'), ('production_consumption', 'Consumo na produção'), ('production_output', 'Saída da produção'), ('adjustment_positive', 'Ajuste positivo'), ('adjustment_negative', 'Ajuste negativo'), ('transfer_in', 'Transferência recebida'), ('transfer_out', 'Transferência enviada'), ('return_in', 'Devolução de cliente'), ('return_out', 'Devolução ao fornecedor'), ('scrap', 'Descarte'), ('opening_stock', 'Saldo inicial')], db_index=True, max_length=30, verbose_name='Tipo')),
                ('quantity', models.DecimalField(decimal_places=4, help_text='Positivo = entrada, Negativo = saída', max_digits=15, verbose_name='Quantidade')),
                ('unit_cost', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=15, verbose_name='Custo Unitário')),
                ('total_cost', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=19, verbose_name='Custo Total')),
                ('occurred_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Ocorrido em')),
                ('location', models.CharField(default='main', max_length=100, verbose_name='Local')),
                ('reference_id', models.PositiveIntegerField(blank=True, null=True, verbose_name='ID da Referência')),
                ('notes', models.TextField(blank=True, default='', verbose_name='Observações')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadados')),
                ('is_active', models.BooleanField(default=True, help_text='Inativos ficam no histórico mas não entram nos saldos', verbose_name='Ativo')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Criado em')),
                ('batch', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='movements', to='ledgerman.batch', verbose_name='Lote')),
                ('content_type', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='contenttypes.contenttype', verbose_name='Tipo de Produto')),
                ('reference_type', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='contenttypes.contenttype', verbose_name='Tipo de Referência')),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL, verbose_name='Usuário')),
            ],
            options={
                'verbose_name': 'Movimento',
                'verbose_name_plural': 'Movimentos',
                'ordering': ['occurred_at', 'id'],
                'indexes': [
                    models.Index(fields=['content_type', 'object_id', 'occurred_at'], name='ledgerman_mv_product_idx'),
                    models.Index(fields=['kind'], name='ledgerman_mv_kind_idx'),
                    models.Index(fields=['is_active'], name='ledgerman_mv_active_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockValuation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('object_id', models.PositiveIntegerField(verbose_name='ID do Produto')),
                ('valuation_date', models.DateField(db_index=True, verbose_name='Data da Valoração')),
                ('period_start', models.DateField(verbose_name='Início do Período')),
                ('method', models.CharField(choices=[('fifo', 'PEPS (FIFO)'), ('lifo', 'UEPS (LIFO)'), ('weighted_average', 'Custo médio ponderado')], max_length=20, verbose_name='Método')),
                ('location', models.CharField(default='main', max_length=100, verbose_name='Local')),
                ('opening_stock', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=15, verbose_name='Estoque Inicial')),
                ('opening_value', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=19, verbose_name='Valor Inicial')),
                ('inward_quantity', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=15, verbose_name='Quantidade de Entrada')),
                ('inward_value', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=19, verbose_name='Valor de Entrada')),
                ('outward_quantity', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=15, verbose_name='Quantidade de Saída')),
                ('outward_value', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=19, verbose_name='Valor de Saída')),
                ('closing_stock', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=15, verbose_name='Estoque Final')),
                ('closing_value', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=19, verbose_name='Valor Final')),
                ('average_cost', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=15, verbose_name='Custo Médio')),
                ('layers', models.JSONField(blank=True, default=list, help_text='Camadas restantes (PEPS/UEPS) ou saldo não arredondado do custo médio ao fim do período', verbose_name='Camadas de Custo')),
                ('negative_stock_encountered', models.BooleanField(default=False, help_text='Saídas excederam as camadas disponíveis durante o cálculo', verbose_name='Estoque Negativo')),
                ('unmatched_quantity', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=15, verbose_name='Quantidade sem Camada')),
                ('content_type', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='+', to='contenttypes.contenttype', verbose_name='Tipo de Produto')),
            ],
            options={
                'verbose_name': 'Valoração de Estoque',
                'verbose_name_plural': 'Valorações de Estoque',
                'ordering': ['-valuation_date', 'method'],
                'indexes': [models.Index(fields=['valuation_date', 'method'], name='ledgerman_sv_date_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('content_type', 'object_id', 'valuation_date', 'method'), name='unique_valuation_per_product_date_method'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StockAlert',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('object_id', models.PositiveIntegerField(verbose_name='ID do Produto')),
                ('alert_type', models.CharField(choices=[('low_stock', 'Estoque baixo'), ('out_of_stock', 'Sem estoque'), ('reorder_point', 'Ponto de reposição'), ('overstock', 'Excesso de estoque'), ('expiry_warning', 'Vencimento próximo'), ('negative_stock', 'Estoque negativo')], max_length=20, verbose_name='Tipo')),
                ('alert_level', models.CharField(choices=[('info', 'Informativo'), ('warning', 'Atenção'), ('critical', 'Crítico')], max_length=20, verbose_name='Nível')),
                ('priority', models.PositiveSmallIntegerField(default=5, help_text='1 (baixa) a 10 (alta)', verbose_name='Prioridade')),
                ('current_stock', models.DecimalField(blank=True, decimal_places=4, max_digits=15, null=True, verbose_name='Estoque Atual')),
                ('threshold_value', models.DecimalField(blank=True, decimal_places=4, max_digits=15, null=True, verbose_name='Limite')),
                ('expiry_date', models.DateField(blank=True, null=True, verbose_name='Data de Validade')),
                ('days_to_expiry', models.IntegerField(blank=True, null=True, verbose_name='Dias para Vencer')),
                ('message', models.TextField(verbose_name='Mensagem')),
                ('is_acknowledged', models.BooleanField(default=False, verbose_name='Reconhecido')),
                ('acknowledged_at', models.DateTimeField(blank=True, null=True, verbose_name='Reconhecido em')),
                ('is_resolved', models.BooleanField(db_index=True, default=False, verbose_name='Resolvido')),
                ('resolved_at', models.DateTimeField(blank=True, null=True, verbose_name='Resolvido em')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Criado em')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Atualizado em')),
                ('acknowledged_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL, verbose_name='Reconhecido por')),
                ('batch', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='alerts', to='ledgerman.batch', verbose_name='Lote')),
                ('content_type', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='+', to='contenttypes.contenttype', verbose_name='Tipo de Produto')),
            ],
            options={
                'verbose_name': 'Alerta de Estoque',
                'verbose_name_plural': 'Alertas de Estoque',
                'ordering': ['-priority', '-created_at'],
                'indexes': [
                    models.Index(fields=['content_type', 'object_id'], name='ledgerman_al_product_idx'),
                    models.Index(fields=['alert_type', 'alert_level'], name='ledgerman_al_type_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('batch__isnull', True), ('is_resolved', False)), fields=('content_type', 'object_id', 'alert_type'), name='unique_open_alert_per_product_type'),
                    models.UniqueConstraint(condition=models.Q(('batch__isnull', False), ('is_resolved', False)), fields=('batch', 'alert_type'), name='unique_open_alert_per_batch_type'),
                ],
            },
        ),
    ]

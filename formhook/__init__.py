"""Pacote do relay Yandex Forms -> Discord.

Este pacote contém:
- constants: variáveis de ambiente e limites do Discord
- utils: utilitários de formatação e helpers
- models: registros tipados (Answer, FormConfig, MentionSet, Embed)
- normalizer: normalização dos formatos de respostas recebidos
- mentions: cálculo das menções de cargos e usuários
- embeds: montagem do embed e do payload do webhook
- services: integração com o Discord (webhooks)
- storage: formas registradas, usuários e log de requisições (SQLite)
- backup: exportação/importação de backups em JSON
- relay: fluxo completo de envio, teste e aviso de manutenção
- controller: criação do Flask app e endpoints
"""
